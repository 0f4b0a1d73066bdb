from dataclasses import dataclass, field

from .resolution import MAX_ORDER
from .sources.collection import BlendingPolicy
from .sources.spatial_index import DEFAULT_INDEX_ORDER
from .utils import get_num_processes


@dataclass
class MosaicConfig:
    max_order: int = MAX_ORDER
    blending: BlendingPolicy = BlendingPolicy.AVERAGE_ALL
    index_order: int = DEFAULT_INDEX_ORDER
    num_processes: int = field(default_factory=get_num_processes)
    # sky pixels per work unit of the raster build
    chunk_size: int = 65536
    pixel_cut: str = "0 255"
    coordsys: str = "E"
    hipsgen: str = "hipsgen"
