from __future__ import annotations

from mender.analysis.suppression import (
    has_directive,
    restore_directive,
    strip_directive,
)


def test_strip_directive_removes_line_comment_and_records_position() -> None:
    text = "// @ts-nocheck\nimport x from 'x';\n"

    stripped, removed = strip_directive(text)

    assert stripped == "import x from 'x';\n"
    assert len(removed) == 1
    assert removed[0].line_index == 0
    assert removed[0].text == "// @ts-nocheck\n"


def test_strip_directive_handles_block_comment_and_crlf() -> None:
    text = "/* @ts-nocheck */\r\nconst a = 1;\r\n"

    stripped, removed = strip_directive(text)

    assert stripped == "const a = 1;\r\n"
    assert removed[0].text == "/* @ts-nocheck */\r\n"


def test_directive_inside_code_or_similar_token_is_ignored() -> None:
    text = "const note = '// @ts-nocheck';\n// @ts-nocheck-later\n"

    assert not has_directive(text)
    assert strip_directive(text) == (text, ())


def test_restore_directive_round_trips_multiple_lines() -> None:
    text = "// header\n// @ts-nocheck\nconst a = 1;\n// @ts-nocheck\nconst b = 2;\n"

    stripped, removed = strip_directive(text)

    assert stripped == "// header\nconst a = 1;\nconst b = 2;\n"
    assert [entry.line_index for entry in removed] == [1, 2]
    assert restore_directive(stripped, removed) == text


def test_restore_directive_after_edit_keeps_directive_on_top() -> None:
    original = "// @ts-nocheck\nconst a = user._id;\n"
    stripped, removed = strip_directive(original)
    edited = "import { getSafeId } from './types';\n" + stripped.replace("user._id", "getSafeId(user)")

    restored = restore_directive(edited, removed)

    assert restored.splitlines()[0] == "// @ts-nocheck"
    assert "getSafeId(user)" in restored


def test_restore_directive_appends_to_unterminated_last_line() -> None:
    stripped, removed = strip_directive("const a = 1;\n// @ts-nocheck")

    assert stripped == "const a = 1;\n"
    assert restore_directive("const a = 1;", removed) == "const a = 1;\n// @ts-nocheck\n"


def test_custom_directive() -> None:
    text = "// @ts-ignore-file\nconst a = 1;\n"

    assert has_directive(text, "@ts-ignore-file")
    assert not has_directive(text)
