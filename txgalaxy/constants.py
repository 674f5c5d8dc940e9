Vec3 = tuple[float, float, float]
ChunkCoords = tuple[int, int, int]
ObjectId = str | int

CHUNK_SIZE = 250.0
ASSIGN_BATCH_SIZE = 50

VISIBILITY_INTERVAL_SECONDS = 0.1
FRUSTUM_NEAR_RADIUS_CHUNKS = 1

LOAD_BATCH_SIZE = 5
LOAD_BATCH_PAUSE_SECONDS = 0.03

OBJECT_RADIUS_SCALE = 2.0
MAX_OBJECT_RADIUS = 20.0

RENDER_DISTANCE = 2
MIN_RENDER_DISTANCE = 2
MAX_RENDER_DISTANCE = 4
RENDER_DISTANCE_STEP = 1

MAX_OBJECTS_PER_CHUNK = 40
MIN_OBJECTS_PER_CHUNK = 30
MAX_OBJECTS_PER_CHUNK_CAP = 70
OBJECTS_PER_CHUNK_STEP = 10

TARGET_FPS = 60.0
LOW_FPS = 30.0
HIGH_FPS = 55.0
FPS_WINDOW = 30
STABILIZATION_SAMPLES = 30

LOD_HIGH_FRACTION = 0.5
LOD_MEDIUM_FRACTION = 0.8

# (render_distance, max_objects_per_chunk) applied in order while warming up.
WARMUP_STAGES = ((3, 50), (4, 70))
WARMUP_STAGE_SECONDS = (1.0, 2.0)
