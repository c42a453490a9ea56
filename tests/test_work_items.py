"""Tests for WorkItem and the wire schema base."""

import pytest
from pydantic import ValidationError

from occupancy_pacer.schemas import WorkItem


class TestWorkItem:
    """Tests for WorkItem validation."""

    def test_bare_string(self) -> None:
        item = WorkItem.model_validate("a misty forest")

        assert item.text == "a misty forest"
        assert item.label is None

    def test_text_and_label(self) -> None:
        item = WorkItem.model_validate({"text": "a misty forest", "label": "Opening"})

        assert item.text == "a misty forest"
        assert item.label == "Opening"

    def test_legacy_shape(self) -> None:
        item = WorkItem.model_validate({"fullPrompt": "a misty forest", "scene": "Scene 2"})

        assert item.text == "a misty forest"
        assert item.label == "Scene 2"

    def test_text_required(self) -> None:
        with pytest.raises(ValidationError):
            WorkItem.model_validate({"label": "Opening"})

    def test_text_passed_verbatim(self) -> None:
        """Payloads are opaque; whitespace is preserved."""
        item = WorkItem.model_validate("  padded  \n")
        assert item.text == "  padded  \n"

    def test_frozen(self) -> None:
        item = WorkItem(text="a")
        with pytest.raises(ValidationError):
            item.text = "b"  # type: ignore[misc]


class TestDisplayName:
    """Tests for WorkItem.display_name."""

    def test_label_preferred(self) -> None:
        assert WorkItem(text="x" * 80, label="Scene 3").display_name == "Scene 3"

    def test_short_text(self) -> None:
        assert WorkItem(text="short").display_name == "short"

    def test_long_text_truncated(self) -> None:
        name = WorkItem(text="y" * 80).display_name

        assert name == "y" * 50 + "..."
