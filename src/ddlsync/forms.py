"""
Form decoration helpers.

FormAsterisk marks mandatory form fields with a red asterisk on the client
side: it emits a jQuery snippet that appends a styled span after every
element carrying the ``mandatory`` class.
"""

import json
import logging
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormAsterisk:
    """Appends an asterisk marker to mandatory form labels."""

    style: str = "color:#e51717"
    text: str = "&nbsp;&#42;"
    selector: str = ".mandatory"

    def marker(self) -> str:
        return f"<span style='{self.style}'>{self.text}</span>"

    def script(self, form_selector: str = "form") -> str:
        """jQuery statement that decorates the form matched by form_selector."""
        return (
            f"$({json.dumps(form_selector)})"
            f".find({json.dumps(self.selector)})"
            f".append({json.dumps(self.marker())});"
        )

    def decorate(self, html: str, form_selector: str = "form") -> str:
        """Inject the decoration script into rendered HTML, run on page load."""
        tag = f"<script>$(function(){{ {self.script(form_selector)} }});</script>"
        position = html.lower().rfind("</body")
        if position == -1:
            return html + tag
        logger.debug(f"Injecting asterisk script for {form_selector}")
        return html[:position] + tag + html[position:]
