"""Repository access: git metadata, file visibility and file URLs."""

from wikigen.repo.file_filter import FileFilter
from wikigen.repo.git_repo import GitRepo
from wikigen.repo.url_parser import build_file_base_url, normalize_remote_url

__all__ = ["FileFilter", "GitRepo", "build_file_base_url", "normalize_remote_url"]
