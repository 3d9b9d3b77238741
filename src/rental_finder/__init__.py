"""Rental listing extraction into a shared spreadsheet."""
