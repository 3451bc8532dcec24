# utils/data_processing.py
import re


def clean_email(email):
    """
    Clean and normalize email addresses
    - Convert to lowercase
    - Remove leading/trailing whitespace
    """
    if not email:
        return ""

    return str(email).strip().lower()


def normalize_name(name):
    """
    Normalize name formatting
    - Remove extra spaces
    - Proper capitalization
    """
    if not name:
        return ""

    name = re.sub(r'\s+', ' ', str(name).strip())

    return name.title()


def clean_text_field(text):
    """
    General text field cleaning for optional seating metadata.
    Returns None for blank input so the column stays NULL.
    """
    if text is None:
        return None

    cleaned = re.sub(r'\s+', ' ', str(text).strip())
    return cleaned or None


def clean_barcode(code):
    """Strip scanner noise (whitespace, CR/LF suffixes) from a decoded barcode."""
    if code is None:
        return ""

    return re.sub(r'\s+', '', str(code))
