import pytest

from usfm_export.export.catalog import VerseRow
from usfm_export.export.usfm import render_book_text
from usfm_export.pipeline.steps.generate_zip import safe_filename


def _verse(chapter, verse, content):
    return VerseRow(
        book_id=40,
        book_code="MAT",
        book_name="Matthew",
        chapter_number=chapter,
        verse_number=verse,
        translated_content=content,
    )


def test_render_book_emits_headers_chapters_and_verses():
    text = render_book_text([
        _verse(1, 1, "The book of the genealogy."),
        _verse(1, 2, None),
        _verse(2, 1, "After Jesus was born."),
    ])

    assert text == (
        "\\id MAT\n"
        "\\h Matthew\n"
        "\\mt Matthew\n"
        "\\c 1\n\\p\n"
        "\\v 1 The book of the genealogy.\n"
        "\\v 2 \n"
        "\\c 2\n\\p\n"
        "\\v 1 After Jesus was born.\n"
        "\n"
    )


def test_render_book_without_verses_is_empty():
    assert render_book_text([]) == ""


@pytest.mark.parametrize(
    ("project_name", "expected"),
    [
        ("Gospel Set", "Gospel_Set.zip"),
        ("  Gospel   Set  ", "Gospel_Set.zip"),
        ('Acts: "Draft" <v2>', "Acts___Draft___v2_.zip"),
        ("a/b\\c|d?e*f", "a_b_c_d_e_f.zip"),
        ("tab\there", "tab_here.zip"),
        ("", "export.zip"),
        (None, "export.zip"),
    ],
)
def test_safe_filename(project_name, expected):
    assert safe_filename(project_name) == expected
