"""
IsoForts round-based fort-building engine
Core simulation without web framework, database, or rendering
"""

# Isometric diamond size in world pixels
TILE_WIDTH = 64
TILE_HEIGHT = 32

# Cosmetic tilt: Y-axis compression applied around the view centre
Y_COMPRESSION = 0.975
