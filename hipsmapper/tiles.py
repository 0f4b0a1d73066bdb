import shlex
from pathlib import Path
from subprocess import CalledProcessError, run
from typing import Optional

from loguru import logger


class TilesGenerationError(Exception):
    def __init__(self, stdout: bytes, stderr: bytes, returncode: int):
        self.stdout = stdout.decode("utf-8", errors="replace")
        self.stderr = stderr.decode("utf-8", errors="replace")
        self.returncode = returncode
        super().__init__(
            f"Tiles generation failed (exit status {returncode}): {self.stderr.strip()}"
        )


def hips_directory(fits_file: Path) -> Path:
    """Where the tiles of ``r.fits`` go: ``r.fitsHiPS``."""
    return fits_file.with_name(f"{fits_file.name}HiPS")


class TilesGeneration:

    @staticmethod
    def command(
        fits_file: Path,
        output_dir: Path,
        pixel_cut: str = "0 255",
        label: Optional[str] = None,
        publisher: Optional[str] = None,
        hipsgen: str = "hipsgen",
    ) -> list[str]:
        command = shlex.split(hipsgen)
        command.extend([f"in={fits_file}", f"out={output_dir}", f"pixelCut={pixel_cut}"])
        if label:
            command.append(f"label={label}")
        if publisher:
            command.append(f"publisher={publisher}")
        command.append("-f")
        return command

    @staticmethod
    def from_file(
        fits_file: Path,
        output_dir: Optional[Path] = None,
        pixel_cut: str = "0 255",
        label: Optional[str] = None,
        publisher: Optional[str] = None,
        hipsgen: str = "hipsgen",
    ) -> Path:
        """Run Hipsgen on a HEALPix FITS file and return the tile directory

        Args:
            fits_file: HEALPix map to tile
            output_dir: tile directory, ``<fits_file>HiPS`` if None
            pixel_cut: display range of the pixel values
            label: optional HiPS label
            publisher: optional HiPS publisher
            hipsgen: command line starting Hipsgen (e.g. "java -jar Hipsgen.jar")

        Returns:
            the tile directory

        Raises:
            TilesGenerationError: If Hipsgen fails or cannot be started
        """
        if output_dir is None:
            output_dir = hips_directory(fits_file)
        command = TilesGeneration.command(
            fits_file, output_dir, pixel_cut, label, publisher, hipsgen
        )
        logger.info(f"Generating tiles: {' '.join(command)}")
        try:
            run(
                command,
                capture_output=True,
                check=True,
            )
        except CalledProcessError as e:
            logger.error(f"Hipsgen failed on {fits_file} (exit status {e.returncode})")
            raise TilesGenerationError(e.stdout or b"", e.stderr or b"", e.returncode) from e
        except OSError as e:
            logger.error(f"Hipsgen could not be started: {e}")
            raise TilesGenerationError(b"", str(e).encode("utf-8"), 127) from e
        logger.info(f"Tiles written to {output_dir}")
        return output_dir
