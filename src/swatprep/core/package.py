"""
QGIS project archive for the prepared QSWAT+ project.

A ``.qgz`` file is a zip archive holding the project descriptor (``.qgs``,
XML text) and a binary sidecar (``.qgd``, the auxiliary storage database).
The template archive uses a placeholder token wherever the project name
belongs; this module writes a copy with the token replaced and the members
renamed after the project.
"""

import logging
import zipfile
from pathlib import Path, PurePosixPath

from swatprep.core.cache import atomic_output

logger = logging.getLogger(__name__)

DESCRIPTOR_SUFFIX = ".qgs"
SIDECAR_SUFFIX = ".qgd"


def build_project_package(
    template_path: Path,
    dst_path: Path,
    project_name: str,
    placeholder: str,
) -> Path:
    """
    Write a project archive from a template archive.

    Args:
        template_path: Template .qgz archive
        dst_path: Output .qgz path
        project_name: Name substituted for the placeholder
        placeholder: Token to replace throughout the descriptor

    Returns:
        Path to the written archive

    Raises:
        ValueError: If the template does not hold exactly one .qgs descriptor
        zipfile.BadZipFile: If the template is not a valid archive
    """
    with zipfile.ZipFile(template_path) as template:
        members = template.namelist()
        descriptors = [m for m in members if PurePosixPath(m).suffix.lower() == DESCRIPTOR_SUFFIX]
        if len(descriptors) != 1:
            raise ValueError(
                f"Template {Path(template_path).name} must contain exactly one {DESCRIPTOR_SUFFIX} file, "
                f"found {len(descriptors)}"
            )

        with atomic_output(dst_path) as tmp_path:
            with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as package:
                for member in members:
                    data = template.read(member)
                    suffix = PurePosixPath(member).suffix.lower()

                    if suffix == DESCRIPTOR_SUFFIX:
                        text = data.decode("utf-8")
                        count = text.count(placeholder)
                        data = text.replace(placeholder, project_name).encode("utf-8")
                        logger.info(f"Replaced {count} occurrence(s) of '{placeholder}' in {member}")

                    if suffix in (DESCRIPTOR_SUFFIX, SIDECAR_SUFFIX):
                        member = str(PurePosixPath(member).with_name(f"{project_name}{suffix}"))

                    package.writestr(member, data)

    logger.info(f"Wrote project package: {dst_path}")
    return Path(dst_path)
