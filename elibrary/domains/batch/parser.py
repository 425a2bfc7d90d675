# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Delimited-text parsing for batch provisioning uploads.

File contract:
- UTF-8, a leading byte order mark is tolerated
- the first record is a header naming the columns
- fields may be double-quoted to embed the delimiter or line breaks; a quote
  inside a quoted field is escaped by doubling it
- blank lines are ignored
- a record whose column count differs from the header is dropped

Two header vocabularies are accepted per role, the human-friendly one used
by spreadsheet templates ("Name", "Grade", "Parent Email") and the machine
one ("full_name", "level", "email"). Both map to the internal field names of
IdentityAttributes.

Example:
    >>> batch = parse_batch(b'Name,Grade,Parent Email\\n"Doe, Jane",Grade 7,p@x.com\\n', Role.STUDENT)
    >>> batch.rows[0].fields["full_name"]
    'Doe, Jane'
"""

import csv
import io
import logging
import re
from collections.abc import Iterable, Sequence

from elibrary.domains.provisioning.exceptions import ValidationError
from elibrary.models.batch import BatchRow, ParsedBatch
from elibrary.models.provisioning import Role

logger = logging.getLogger(__name__)

BATCH_ROLES = (Role.STUDENT, Role.STAFF)

HEADER_ALIASES: dict[Role, dict[str, str]] = {
    Role.STUDENT: {
        "name": "full_name",
        "full name": "full_name",
        "full_name": "full_name",
        "grade": "grade_level",
        "level": "grade_level",
        "grade_level": "grade_level",
        "parent email": "parent_email",
        "parent_email": "parent_email",
        "email": "parent_email",
        "phone": "phone",
        "phone_number": "phone",
    },
    Role.STAFF: {
        "name": "full_name",
        "full name": "full_name",
        "full_name": "full_name",
        "email": "email",
        "phone": "phone",
        "phone_number": "phone",
        "department": "department",
        "position": "position",
    },
}

TEMPLATES: dict[Role, tuple[list[str], list[list[str]]]] = {
    Role.STUDENT: (
        ["Name", "Grade", "Parent Email"],
        [
            ["John Doe", "Grade 7", "parent1@example.com"],
            ["Jane Smith", "Grade 8", "parent2@example.com"],
            ["Bob Johnson", "Grade 9", "parent3@example.com"],
        ],
    ),
    Role.STAFF: (
        ["full_name", "email", "phone", "department", "position"],
        [
            ["Mary Manager", "mary.manager@example.com", "+2290153077528", "Administration", "Librarian"],
            ["Tom Staff", "tom.staff@example.com", "+2290143088639", "IT Department", "Assistant"],
            ["Sarah Support", "sarah.support@example.com", "+2290123456789", "Library", "Staff"],
        ],
    ),
}

_WHITESPACE_RE = re.compile(r"\s+")


def ensure_batch_role(role: Role | str) -> Role:
    """Return the role if batch import supports it.

    Raises:
        ValidationError: For roles that cannot be imported in batch.
    """
    role = Role(role)
    if role not in BATCH_ROLES:
        raise ValidationError(f"batch import does not support role {role.value}")
    return role


def normalize_header(role: Role, column: str) -> str:
    """Map a header cell to its internal field name.

    Unknown columns are kept, lowercased with underscores, and ignored by
    the pipeline.
    """
    key = _WHITESPACE_RE.sub(" ", column.strip().lower())
    return HEADER_ALIASES[role].get(key, key.replace(" ", "_"))


def parse_batch(data: bytes | str, role: Role | str, delimiter: str = ",") -> ParsedBatch:
    """Parse an uploaded delimited file into batch rows.

    Args:
        data: Raw file content.
        role: Role being imported; selects the header vocabulary.
        delimiter: Field delimiter.

    Returns:
        ParsedBatch with well-formed rows and the line numbers of dropped ones.

    Raises:
        ValidationError: If the content is not UTF-8 or cannot be tokenized.
    """
    role = ensure_batch_role(role)
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError("file is not valid UTF-8 text") from e
    else:
        text = data.lstrip("\ufeff")

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    header: list[str] | None = None
    rows: list[BatchRow] = []
    dropped: list[int] = []
    line = 0

    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            line += 1
            values = [cell.strip() for cell in record]
            if header is None:
                header = [normalize_header(role, cell) for cell in values]
                continue
            if len(values) != len(header):
                dropped.append(line)
                continue
            rows.append(BatchRow(row=line, fields=dict(zip(header, values))))
    except csv.Error as e:
        raise ValidationError(f"malformed delimited text near line {line + 1}: {e}") from e

    if dropped:
        logger.info("Dropped %d malformed rows: %s", len(dropped), dropped)
    return ParsedBatch(header=header or [], rows=rows, dropped_rows=dropped)


def encode_rows(
    header: Sequence[str],
    rows: Iterable[Sequence[object]],
    delimiter: str = ",",
) -> str:
    """Encode rows as delimited text with every field quoted.

    None values are written as empty fields.
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(
        buffer,
        delimiter=delimiter,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()


def render_template(role: Role | str, delimiter: str = ",") -> str:
    """Render a sample upload file for the role."""
    header, samples = TEMPLATES[ensure_batch_role(role)]
    return encode_rows(header, samples, delimiter=delimiter)
