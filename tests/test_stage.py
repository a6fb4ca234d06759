import pytest

from lingress.stage import Stage


@pytest.mark.parametrize(
    "stage, expected",
    [
        (Stage.UNKNOWN, "unknown"),
        (Stage.CREATED, "created"),
        (Stage.EVALUATE_CLIENT_REQUEST, "evaluateClientRequest"),
        (Stage.PREPARE_UPSTREAM_REQUEST, "prepareUpstreamRequest"),
        (Stage.SEND_REQUEST_TO_UPSTREAM, "sendRequestToUpstream"),
        (Stage.PREPARE_CLIENT_RESPONSE, "prepareClientResponse"),
        (Stage.SEND_RESPONSE_TO_CLIENT, "sendResponseToClient"),
        (Stage.DONE, "done"),
    ],
)
def test_stage_names(stage, expected):
    assert str(stage) == expected


def test_stage_values_are_ordered():
    assert [str(Stage(value)) for value in range(8)] == [
        "unknown",
        "created",
        "evaluateClientRequest",
        "prepareUpstreamRequest",
        "sendRequestToUpstream",
        "prepareClientResponse",
        "sendResponseToClient",
        "done",
    ]


def test_stage_lookup_by_value():
    assert Stage(3) is Stage.PREPARE_UPSTREAM_REQUEST
    assert Stage(7) is Stage.DONE


def test_stage_names_are_unique():
    names = [str(Stage(value)) for value in range(8)]
    assert len(set(names)) == 8


def test_unknown_stage_value_rejected():
    with pytest.raises(ValueError):
        Stage(99)