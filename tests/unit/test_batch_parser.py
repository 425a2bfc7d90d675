# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for batch file parsing and encoding."""

import pytest

from elibrary.domains.batch.parser import (
    encode_rows,
    normalize_header,
    parse_batch,
    render_template,
)
from elibrary.domains.provisioning.exceptions import ValidationError
from elibrary.models.provisioning import Role


class TestNormalizeHeader:
    """Tests for header vocabulary reconciliation."""

    @pytest.mark.parametrize(
        "column,expected",
        [
            ("Name", "full_name"),
            ("full_name", "full_name"),
            ("Grade", "grade_level"),
            ("level", "grade_level"),
            ("Parent  Email", "parent_email"),
            ("email", "parent_email"),
            ("Phone_Number", "phone"),
            ("Library Card", "library_card"),
        ],
    )
    def test_student_vocabulary(self, column: str, expected: str) -> None:
        assert normalize_header(Role.STUDENT, column) == expected

    def test_staff_email_stays_email(self) -> None:
        assert normalize_header(Role.STAFF, "Email") == "email"


class TestParseBatch:
    """Tests for parse_batch."""

    def test_friendly_and_machine_headers_agree(self) -> None:
        friendly = parse_batch(b"Name,Grade,Parent Email\nAda,Grade 7,a@b.com\n", Role.STUDENT)
        machine = parse_batch(b"full_name,level,email\nAda,Grade 7,a@b.com\n", Role.STUDENT)

        assert friendly.rows[0].fields == machine.rows[0].fields == {
            "full_name": "Ada",
            "grade_level": "Grade 7",
            "parent_email": "a@b.com",
        }

    def test_quoted_fields_keep_delimiters_quotes_and_newlines(self) -> None:
        data = (
            'full_name,email,phone,department,position\n'
            '"Doe, Jane",jane@x.com,,"Library\nNorth wing","The ""Boss"""\n'
        )

        batch = parse_batch(data, Role.STAFF)

        fields = batch.rows[0].fields
        assert fields["full_name"] == "Doe, Jane"
        assert fields["department"] == "Library\nNorth wing"
        assert fields["position"] == 'The "Boss"'
        assert fields["phone"] == ""

    def test_row_numbers_skip_blank_lines(self) -> None:
        data = b"Name,Grade,Parent Email\n\nAda,Grade 7,a@b.com\n  \nBob,Grade 8,b@b.com\n"

        batch = parse_batch(data, Role.STUDENT)

        assert [row.row for row in batch.rows] == [2, 3]

    def test_mismatched_rows_are_dropped(self) -> None:
        data = b"Name,Grade,Parent Email\nAda,Grade 7\nBob,Grade 8,b@b.com\nCy,1,2,3\n"

        batch = parse_batch(data, Role.STUDENT)

        assert [row.fields["full_name"] for row in batch.rows] == ["Bob"]
        assert batch.dropped_rows == [2, 4]

    def test_byte_order_mark_is_tolerated(self) -> None:
        batch = parse_batch("\ufeffName,Grade,Parent Email\nAda,Grade 7,a@b.com\n".encode(), "student")

        assert batch.header == ["full_name", "grade_level", "parent_email"]

    def test_cells_are_trimmed(self) -> None:
        batch = parse_batch(b"Name , Grade,Parent Email\n  Ada ,Grade 7 , a@b.com\n", Role.STUDENT)

        assert batch.rows[0].fields["full_name"] == "Ada"
        assert batch.rows[0].fields["grade_level"] == "Grade 7"

    def test_alternative_delimiter(self) -> None:
        batch = parse_batch(b"Name;Grade;Parent Email\nAda;Grade 7;a@b.com\n", Role.STUDENT, ";")

        assert batch.rows[0].fields["parent_email"] == "a@b.com"

    def test_empty_file(self) -> None:
        batch = parse_batch(b"", Role.STAFF)

        assert batch.header == []
        assert batch.rows == []

    def test_invalid_utf8_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="UTF-8"):
            parse_batch(b"Name\n\xff\xfe\xfa\n", Role.STAFF)

    def test_librarians_cannot_be_imported(self) -> None:
        with pytest.raises(ValidationError, match="librarian"):
            parse_batch(b"Name\nLiz\n", Role.LIBRARIAN)


class TestEncodeRows:
    """Tests for encode_rows."""

    def test_round_trip_with_embedded_delimiter(self) -> None:
        """Test that encoding then parsing yields the original values."""
        header = ["full_name", "email", "phone", "department", "position"]
        rows = [
            ["Doe, Jane", "jane@x.com", "+2290123456789", 'IT "Core"', "Lead, Ops"],
            ["Tom Staff", "tom@x.com", "", "Library", "Assistant"],
        ]

        batch = parse_batch(encode_rows(header, rows), Role.STAFF)

        assert [list(row.fields.values()) for row in batch.rows] == rows

    def test_every_field_is_quoted(self) -> None:
        assert encode_rows(["a", "b"], [[1, None]]) == '"a","b"\n"1",""\n'


class TestRenderTemplate:
    """Tests for sample upload files."""

    @pytest.mark.parametrize("role", [Role.STUDENT, Role.STAFF])
    def test_template_parses_into_complete_rows(self, role: Role) -> None:
        batch = parse_batch(render_template(role), role)

        assert len(batch.rows) == 3
        assert batch.dropped_rows == []
        assert all(row.fields["full_name"] for row in batch.rows)
