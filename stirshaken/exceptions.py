# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Request and service errors raised in front of the signing engine.

Input errors are always raised before any engine call, so a rejected
request never produces a partial signing or checking attempt.
"""


class InputError(Exception):
    """Base exception for unusable request input."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingInputError(InputError):
    """A required value (key path, identity, request body) was not supplied."""

    @classmethod
    def private_key(cls) -> "MissingInputError":
        return cls("path to private key not provided")

    @classmethod
    def identity(cls) -> "MissingInputError":
        return cls("Identity value not provided")


class FileReadError(InputError):
    """A configured input file could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to read {path}: {reason}")


class JSONParseError(InputError):
    """Header or payload text is not valid JSON for its record type."""

    def __init__(self, part: str, reason: str):
        self.part = part
        super().__init__(f"Failed to parse {part} json: {reason}")


class MixedRepresentationError(InputError):
    """One side resolved to raw JSON text and the other to a typed record."""

    def __init__(self, text_part: str, record_part: str):
        super().__init__(
            f"{text_part} given as raw JSON text but {record_part} built from "
            f"individual fields; supply both as JSON text, or use --json-parse"
        )


class CSVFieldsError(InputError):
    """A CSV signing request carried fewer fields than required."""

    def __init__(self, count: int, required: int):
        self.count = count
        super().__init__(f"too few tokens in input body: {count} (need {required})")


class ListenerError(Exception):
    """An HTTP or HTTPS listener failed to start or stopped serving."""

    def __init__(self, name: str, address: str, reason: str):
        self.name = name
        self.address = address
        super().__init__(f"{name} listener on {address} failed: {reason}")
