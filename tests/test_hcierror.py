import pytest

from blestack.hcierror import (
    BusyAdvertisingError,
    BusyDialingError,
    BusyListeningError,
    BusyScanningError,
    CommandError,
    HCIError,
    InvalidAddressError,
    Status,
)


@pytest.mark.parametrize(
    "code, message",
    [
        (Status.COMMAND_DISALLOWED, "Command Disallowed"),
        (Status.CONNECTION_TIMEOUT, "Connection Timeout"),
        (Status.REMOTE_USER_TERMINATED, "Remote User Terminated Connection"),
        (Status.UNSPECIFIED, "Unspecified Error"),
        (0x2B, "Reserved"),
        (0x04, "Page Timeou"),
    ],
)
def test_command_error_messages(code, message):
    assert str(CommandError(code)) == message


def test_unknown_code_is_unspecified():
    assert str(CommandError(0x99)) == "Unspecified Error"


def test_command_error_equality_by_code():
    assert CommandError(Status.COMMAND_DISALLOWED) == CommandError(0x0C)
    assert CommandError(Status.COMMAND_DISALLOWED).code == 0x0C
    assert not (
        CommandError(Status.COMMAND_DISALLOWED) == CommandError(Status.CONNECTION_TIMEOUT)
    )
    assert len({CommandError(Status.COMMAND_DISALLOWED), CommandError(0x0C)}) == 1


def test_command_error_repr_and_base_class():
    err = CommandError(Status.COMMAND_DISALLOWED)
    assert repr(err) == "CommandError(0x0C)"
    assert err.code == 0x0C
    assert isinstance(err, HCIError)


@pytest.mark.parametrize(
    "cls, message",
    [
        (BusyScanningError, "busy scanning"),
        (BusyAdvertisingError, "busy advertising"),
        (BusyDialingError, "busy dialing"),
        (BusyListeningError, "busy listening"),
        (InvalidAddressError, "invalid address"),
    ],
)
def test_sentinel_errors(cls, message):
    err = cls()
    assert str(err) == message
    assert isinstance(err, HCIError)


def test_custom_message_overrides_default():
    assert str(BusyScanningError("scanner in use")) == "scanner in use"