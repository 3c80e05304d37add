"""Archive packaging for transformation uploads."""

from code_transform.infrastructure.archive.zip_builder import is_excluded_dependency_file, zip_code

__all__ = ["is_excluded_dependency_file", "zip_code"]
