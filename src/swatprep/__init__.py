"""
swatprep: prepare QSWAT+ watershed model inputs from public geodata.

The pipeline fetches watershed boundaries, flowlines, gauging stations, a DEM,
soils and land-use rasters, reprojects and masks them to the watershed, and
writes a QSWAT+ project folder, reference database patch and project archive.
"""

__version__ = "0.1.0"
