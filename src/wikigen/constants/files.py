"""File filtering and repository context configuration.

These settings control which files the agent tools can see and how the
repository context summary is assembled.
"""

# =============================================================================
# Size Limits
# =============================================================================
# Files larger than MAX_FILE_SIZE_KB are hidden from the agent tools so that
# data dumps and bundles do not consume the model's context window.

MAX_FILE_SIZE_KB = 500

# =============================================================================
# Binary Detection
# =============================================================================
# To detect binary files, we read the first N bytes and check for null
# characters. Known binary extensions are skipped without reading.

BINARY_CHECK_BYTES = 1024

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svgz",
        ".pdf", ".zip", ".gz", ".tar", ".tgz", ".bz2", ".xz", ".7z", ".rar",
        ".exe", ".dll", ".so", ".dylib", ".a", ".lib", ".o", ".obj", ".class",
        ".jar", ".war", ".pyc", ".pyo", ".whl", ".bin", ".dat", ".db", ".sqlite",
        ".woff", ".woff2", ".ttf", ".otf", ".eot", ".mp3", ".mp4", ".wav",
        ".avi", ".mov", ".mkv", ".flac", ".ogg",
    }
)

# =============================================================================
# Agent File Tools
# =============================================================================
# ReadFile returns at most READ_LIMIT_LINES lines per call and cuts single lines
# longer than MAX_LINE_LENGTH. ListFiles and Grep return at most MAX_RESULTS
# entries unless the model asks for fewer.

READ_LIMIT_LINES = 2000
MAX_LINE_LENGTH = 2000
MAX_RESULTS = 50
TRUNCATED_LINE_MARKER = "... [truncated]"

# Patterns hidden from the agent tools in addition to .gitignore rules.
DEFAULT_EXCLUDES = [
    # Hidden files and directories (dotfiles/dotdirs)
    ".*",
    # Dependencies
    "node_modules",
    "vendor",
    "venv",
    "__pycache__",
    # Build outputs
    "bin",
    "obj",
    "build",
    "dist",
    "target",
    "out",
    # Minified/bundled assets
    "*.min.js",
    "*.min.css",
    "*.bundle.js",
    "*.map",
    # Lock files (large, not useful for docs)
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "Cargo.lock",
    "poetry.lock",
]

# =============================================================================
# Repository Context
# =============================================================================
# Directories never shown in the directory tree summary. Directories whose
# name starts with a dot are skipped as well.

EXCLUDED_DIRECTORIES = frozenset(
    {
        "node_modules", "bin", "obj", "dist", "build", ".git", ".svn", ".hg",
        ".idea", ".vscode", ".vs", "__pycache__", ".cache", "coverage",
        "packages", "vendor", ".next", ".nuxt", "target", "out", ".output",
    }
)

README_CANDIDATES = ("README.md", "README.MD", "readme.md", "README.rst", "README.txt", "README")
README_TRUNCATED_MARKER = "\n\n[... README truncated for brevity ...]"
README_MISSING = "[No README found]"
README_UNREADABLE = "[Unable to read README]"

DEFAULT_README_MAX_LENGTH = 4000
DEFAULT_DIRECTORY_TREE_MAX_DEPTH = 2
DEFAULT_MAX_ENTRY_POINTS = 10

# Files at depth <= FILES_MAX_DEPTH are listed in the tree; deeper levels
# only show directories.
FILES_MAX_DEPTH = 1
