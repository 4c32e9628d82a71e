# xmlwatcher/webhook/overwrite.py

"""
Write webhook responses back into the watched file
"""
import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from ..utils.config import TEMP_SUFFIX
from ..watchdog.suppression import SuppressionRegistry

logger = logging.getLogger(__name__)


class OverwriteApplier:
    """
    Replace a file's content atomically, suppressing the resulting event

    The suppression entry is registered before the temporary file is
    renamed over the target, so the watcher can never see the new
    content without the entry already being in place.
    """

    def __init__(self, registry: SuppressionRegistry):
        self.registry = registry
        self.stats = {
            'overwritten': 0,
            'failed': 0,
        }

    def apply(self, path: Union[str, Path], content: bytes) -> bool:
        """
        Replace the content of `path` with `content`

        Args:
            path: File to overwrite
            content: New file content

        Returns:
            True if the file now holds `content`; False on a write error
        """
        path = Path(path)
        self.registry.register(path)

        tmp_path = None
        try:
            # TEMP_SUFFIX is never a watched extension, so the filter skips this name
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=TEMP_SUFFIX
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            if path.exists():
                shutil.copymode(path, tmp_path)

            os.replace(tmp_path, path)
            tmp_path = None

        except OSError as e:
            # The suppression entry is left to expire on its own
            self.stats['failed'] += 1
            logger.warning(
                f"Failed to overwrite {path} with response content: {e}",
                extra={'path': str(path)},
            )
            return False

        finally:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"Failed to remove temporary file {tmp_path}: {e}")

        self.stats['overwritten'] += 1
        logger.info(
            f"File {path} overwritten with response content ({len(content)} bytes)",
            extra={'path': str(path), 'bytes': len(content)},
        )
        return True

    async def apply_async(self, path: Union[str, Path], content: bytes) -> bool:
        """Run `apply` in the default executor"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.apply, path, content)
