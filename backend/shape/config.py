"""Shape extraction constants."""

# Longest side of the working raster; larger images are downscaled.
MAX_DIMENSION = 800

# Luminance weights applied to R, G, B.
LUMA_WEIGHTS = (0.3, 0.59, 0.11)

# Threshold mode: luminance strictly below this is shape.
LUMINANCE_THRESHOLD = 128

# Gradient mode: Sobel magnitude strictly above this is shape.
GRADIENT_THRESHOLD = 40.0

# Channel values of a binary mask.
SHAPE_VALUE = 0
BACKGROUND_VALUE = 255
OPAQUE = 255

# Normalized coordinate range for points.
COORD_MIN = 0.0
COORD_MAX = 100.0

# Rejection sampling gives up after this many attempts per requested point.
ATTEMPT_FACTOR = 10

# Direct sampling pads with random points when fewer than this fraction were found.
PAD_FRACTION = 0.5

# Moore neighbourhood, clockwise from north. (dx, dy) with y growing downwards.
DIRECTIONS = (
    (0, -1),   # N
    (1, -1),   # NE
    (1, 0),    # E
    (1, 1),    # SE
    (0, 1),    # S
    (-1, 1),   # SW
    (-1, 0),   # W
    (-1, -1),  # NW
)
EAST = 2
# Scan starts this many clockwise steps from the heading (6 == 90 degrees counter-clockwise).
SCAN_OFFSET = 6
