from pzsvc_exec.errors import TransferError
from pzsvc_exec.execution.result import ExecutionResult, transfer_each


def test_first_error_status_wins() -> None:
    result = ExecutionResult()
    result.add_error("forbidden", 403)
    result.add_error("bad", 400)
    result.add_error("broken", 500)

    assert result.http_status == 403
    assert result.errors == ["forbidden", "bad", "broken"]
    assert not result.ok


def test_payload_omits_empty_fields() -> None:
    result = ExecutionResult()
    result.prog_stdout = "done\n"

    assert result.to_payload() == {"ProgStdOut": "done\n", "HTTPStatus": 200}


def test_payload_uses_wire_names() -> None:
    result = ExecutionResult()
    result.in_files["abc"] = "in.tif"
    result.out_files["out.txt"] = "data-1"
    result.add_error("oops", 400)

    assert result.to_payload() == {
        "InFiles": {"abc": "in.tif"},
        "OutFiles": {"out.txt": "data-1"},
        "Errors": ["oops"],
        "HTTPStatus": 400,
    }


def test_transfer_each_isolates_failures() -> None:
    result = ExecutionResult()

    def transfer(item: str, name: str) -> str:
        if item == "b":
            raise TransferError("unreachable")
        if item == "c":
            return ""
        return name or f"{item}.dat"

    transfer_each(["a", "b", "c", "d"], ["first.dat"], transfer, "Pz download", result, result.in_files)

    assert result.in_files == {"a": "first.dat", "d": "d.dat"}
    assert result.errors == [
        "Pz download of 'b' failed: unreachable",
        "Pz download of 'c' gave a blank result.",
    ]
    assert result.http_status == 400
