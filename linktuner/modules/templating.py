"""
Command Templating

Fills the operator-supplied RouterOS command templates with the values
of the current sweep step.
"""

from typing import Optional, Union

from config import (
    PLACEHOLDER_CHANNEL_WIDTH,
    PLACEHOLDER_FREQUENCY,
    PLACEHOLDER_INTERFACE,
    PLACEHOLDER_PROTOCOL,
)


def format_frequency(frequency: Union[int, float]) -> str:
    """Round to the nearest whole MHz and format without locale."""
    return str(int(round(float(frequency))))


def render_command(
    template: str,
    interface: str,
    frequency: Optional[Union[int, float]] = None,
    protocol: Optional[str] = None,
    channel_width: Optional[str] = None,
) -> str:
    """
    Substitute placeholders into a command template.

    ``{interface}`` is always replaced; the other placeholders only when a
    value is supplied, so a template may keep an unfilled placeholder.
    No escaping is applied: templates are trusted operator input.

    Args:
        template: Command template
        interface: Wireless interface name
        frequency: Frequency in MHz
        protocol: Wireless protocol name
        channel_width: Channel width name

    Returns:
        Command ready to send
    """
    command = template.replace(PLACEHOLDER_INTERFACE, interface)
    if frequency is not None:
        command = command.replace(PLACEHOLDER_FREQUENCY, format_frequency(frequency))
    if protocol is not None:
        command = command.replace(PLACEHOLDER_PROTOCOL, protocol)
    if channel_width is not None:
        command = command.replace(PLACEHOLDER_CHANNEL_WIDTH, channel_width)
    return command
