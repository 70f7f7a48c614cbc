import pytest

from casepulse.classifier import classify_case, resolve_case
from casepulse.schemas import CaseStatus


@pytest.mark.parametrize("ok_flag", ["", "ok", "nok", "whatever"])
def test_open_state_wins_over_flag(ok_flag: str) -> None:
    assert classify_case("aberto", ok_flag) is CaseStatus.OPEN


def test_explicit_flags() -> None:
    assert classify_case("fechado", "ok") is CaseStatus.RESOLVED_OK
    assert classify_case("fechado", "nok") is CaseStatus.RESOLVED_NOT_OK


@pytest.mark.parametrize("ok_flag", ["", "talvez", "n/a"])
def test_missing_confirmation_falls_back_to_not_ok(ok_flag: str) -> None:
    resolution = resolve_case("resolvido", ok_flag)

    assert resolution.status is CaseStatus.RESOLVED_NOT_OK
    assert resolution.is_fallback


def test_real_nok_is_not_a_fallback() -> None:
    assert not resolve_case("fechado", "nok").is_fallback


def test_unknown_is_never_returned() -> None:
    for state in ("aberto", "fechado", ""):
        for flag in ("ok", "nok", "", "?"):
            assert classify_case(state, flag) is not CaseStatus.UNKNOWN
