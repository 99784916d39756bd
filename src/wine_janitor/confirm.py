"""!
@brief Shared confirmation helpers for destructive operations.
@details Every destructive step in Wine Janitor is gated by a ``[y/N]``
question: only an explicit ``y`` or ``yes`` proceeds, anything else declines.
Menu prompts additionally accept ``q`` to abort the whole run.
"""

from __future__ import annotations

from typing import Callable, Optional

from . import constants

InputFunc = Callable[[str], str]


class UserAbort(Exception):
    """!
    @brief Raised when the operator ends the run from a prompt.
    @details This is a normal terminal state, not an error; the CLI exits
    with status ``0``.
    """


def is_yes(response: str) -> bool:
    return response.strip().lower() in constants.YES_ANSWERS


def ask_yes_no(question: str, *, input_func: Optional[InputFunc] = None) -> bool:
    """!
    @brief Ask ``question`` with a ``[y/N]`` suffix.
    @details End of input counts as a decline.
    @returns ``True`` only for an explicit yes.
    """

    if input_func is None:
        input_func = input
    try:
        response = input_func(f"{question} [y/N]: ")
    except EOFError:
        return False
    return is_yes(response)


def prompt_line(prompt: str, *, input_func: Optional[InputFunc] = None) -> str:
    """!
    @brief Read one line from the operator, honouring the abort token.
    @raises UserAbort When the answer is ``q``/``Q`` or input is closed.
    """

    if input_func is None:
        input_func = input
    try:
        response = input_func(prompt)
    except EOFError as exc:
        raise UserAbort("input closed") from exc
    if response.strip().lower() in constants.ABORT_TOKENS:
        raise UserAbort("aborted at prompt")
    return response


__all__ = ["InputFunc", "UserAbort", "ask_yes_no", "is_yes", "prompt_line"]
