"""File handling utilities for protein structure files."""

from pathlib import Path

from src.config.settings import SUPPORTED_FORMATS, MAX_FILE_SIZE_WARNING


def validate_file_path(file_path: str | Path) -> bool:
    """Check if a file path is valid and readable.

    Args:
        file_path: Path to the file to validate.

    Returns:
        True if the file exists and is readable, False otherwise.
    """
    file_path = Path(file_path)
    return file_path.exists() and file_path.is_file()


def get_file_format(file_path: str | Path) -> str:
    """Detect the file format from the file extension.

    Args:
        file_path: Path to the file.

    Returns:
        The file extension in lowercase (e.g., '.pdb', '.cif').

    Raises:
        ValueError: If the file format is not supported.
    """
    file_path = Path(file_path)
    extension = file_path.suffix.lower()

    if extension not in SUPPORTED_FORMATS:
        raise ValueError(
            f"Unsupported file format: {extension}. "
            f"Supported formats: {', '.join(SUPPORTED_FORMATS)}"
        )

    return extension


def is_pdb_id(source_id: str) -> bool:
    """Check whether a source id looks like a four-character PDB code.

    Args:
        source_id: Candidate identifier.

    Returns:
        True for ids like '1UBQ' or '4hhb'.
    """
    return len(source_id) == 4 and source_id[0].isdigit() and source_id.isalnum()


def is_file_too_large(file_path: str | Path) -> bool:
    """Check if a file exceeds the recommended size limit.

    Args:
        file_path: Path to the file.

    Returns:
        True if the file exceeds MAX_FILE_SIZE_WARNING, False otherwise.
    """
    return Path(file_path).stat().st_size > MAX_FILE_SIZE_WARNING
