import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path

_logger = logging.getLogger(__name__)


def _make_owner_writable(path: str) -> None:
    try:
        mode = os.lstat(path).st_mode
        if stat.S_ISDIR(mode) and mode & stat.S_IRWXU != stat.S_IRWXU:
            os.chmod(path, mode | stat.S_IRWXU)
    except OSError as e:
        _logger.debug("Failed to restore permissions on %s: %s", path, e)


def _restore_permissions(path: Path) -> None:
    """Give the owner rwx on every directory below ``path``; symlinks are left alone."""
    _make_owner_writable(str(path))
    for root, dirs, _ in os.walk(path):
        for name in dirs:
            _make_owner_writable(os.path.join(root, name))


def _remove(target: str, remove) -> None:
    try:
        remove(target)
    except PermissionError:
        # the program under test may have locked a directory it created
        _make_owner_writable(os.path.dirname(target))
        remove(target)


def remove_tree(path: Path) -> None:
    """Delete ``path`` file by file; a file that cannot be removed is logged and skipped."""
    _restore_permissions(path)
    for root, dirs, files in os.walk(path, topdown=False):
        for name in files:
            try:
                _remove(os.path.join(root, name), os.unlink)
            except OSError as e:
                _logger.debug("Failed to delete temp file %s: %s", os.path.join(root, name), e)
        for name in dirs:
            target = os.path.join(root, name)
            try:
                _remove(target, os.unlink if os.path.islink(target) else os.rmdir)
            except OSError as e:
                _logger.debug("Failed to delete temp dir %s: %s", target, e)
    try:
        os.rmdir(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        _logger.warning("Failed to cleanup temp directory %s: %s", path, e)


@contextmanager
def workspace(prefix: str = "judge_"):
    """Create an exclusively owned temp directory and remove it on exit."""
    work_dir = Path(tempfile.mkdtemp(prefix=prefix))
    _logger.debug("Created temp directory: %s", work_dir)
    try:
        yield work_dir
    finally:
        remove_tree(work_dir)
