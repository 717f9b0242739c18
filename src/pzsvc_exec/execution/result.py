"""Aggregated execution result and per-item failure folding."""

import logging
from collections.abc import Callable, Sequence
from http import HTTPStatus
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pzsvc_exec.errors import ExecServiceError

logger = logging.getLogger(__name__)

Transfer = Callable[[str, str], str]


class ExecutionResult(BaseModel):
    """Everything the caller learns about one execution."""

    model_config = ConfigDict(populate_by_name=True)

    in_files: dict[str, str] = Field(default_factory=dict, alias="InFiles")
    out_files: dict[str, str] = Field(default_factory=dict, alias="OutFiles")
    prog_stdout: str = Field(default="", alias="ProgStdOut")
    prog_stderr: str = Field(default="", alias="ProgStdErr")
    errors: list[str] = Field(default_factory=list, alias="Errors")
    http_status: int = Field(default=HTTPStatus.OK.value, alias="HTTPStatus")

    @property
    def ok(self) -> bool:
        return self.http_status == HTTPStatus.OK

    def add_error(self, message: str, status: int) -> None:
        """Append an error; only the first non-success status is kept."""
        self.errors.append(message)
        if self.http_status == HTTPStatus.OK:
            self.http_status = int(status)

    def record(self, exc: ExecServiceError) -> None:
        self.add_error(str(exc), exc.status_code)

    def to_payload(self) -> dict[str, Any]:
        """JSON body with empty and zero fields omitted."""
        payload = self.model_dump(by_alias=True)
        return {key: value for key, value in payload.items() if value}


def transfer_each(
    items: Sequence[str],
    names: Sequence[str],
    transfer: Transfer,
    label: str,
    result: ExecutionResult,
    record: dict[str, str],
) -> None:
    """Run `transfer` for every item, folding failures into `result`.

    `names` is parallel to `items`; a missing entry means no preference. A
    failing item is left out of `record` and does not stop its siblings.
    """
    for index, item in enumerate(items):
        name = names[index] if index < len(names) else ""
        try:
            outcome = transfer(item, name)
        except ExecServiceError as exc:
            logger.warning("%s of '%s' failed: %s", label, item, exc)
            result.add_error(f"{label} of '{item}' failed: {exc}", exc.status_code)
            continue

        if not outcome:
            result.add_error(f"{label} of '{item}' gave a blank result.", HTTPStatus.BAD_REQUEST)
            continue
        record[item] = outcome
