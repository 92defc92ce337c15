import random
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

Cells = Tuple[Tuple[int, ...], ...]


@dataclass(frozen=True)
class Piece:
    instance_id: str
    shape_id: str
    cells: Cells

    def to_dict(self) -> Dict[str, str]:
        # cells are derived from shape_id and never leave the process
        return {'instance_id': self.instance_id, 'shape_id': self.shape_id}


# shape id -> occupancy matrix, rows top to bottom
CATALOG: Dict[str, Cells] = {
    '1x1': ((1,),),
    '2x1': ((1, 1),),
    '1x2': ((1,), (1,)),
    '3x1': ((1, 1, 1),),
    '1x3': ((1,), (1,), (1,)),
    '2x2': ((1, 1), (1, 1)),
    'L': ((1, 0), (1, 0), (1, 1)),
    'T': ((1, 1, 1), (0, 1, 0)),
    'Z': ((1, 1, 0), (0, 1, 1)),
}

SHAPE_IDS = tuple(CATALOG)

_FALLBACK_SHAPE = '1x1'


def shape_cells(shape_id: str) -> Cells:
    """Look up the matrix for a shape id; unknown ids fall back to the monomino."""
    return CATALOG.get(shape_id, CATALOG[_FALLBACK_SHAPE])


def make_piece(shape_id: str, instance_id: Optional[str] = None) -> Piece:
    return Piece(
        instance_id=instance_id or uuid.uuid4().hex,
        shape_id=shape_id,
        cells=shape_cells(shape_id),
    )


def generate_batch(n: int = 3, rng: Optional[random.Random] = None) -> List[Piece]:
    """Return ``n`` pieces sampled uniformly (with repeats) from the catalog.

    Nothing guarantees that any of the returned pieces fits on the board.
    """
    rng = rng or random
    return [make_piece(rng.choice(SHAPE_IDS)) for _ in range(n)]


def serialize_pieces(pieces: Optional[Sequence[Optional[Piece]]]) -> List[Optional[Dict[str, str]]]:
    if not pieces:
        return []
    return [p.to_dict() if p else None for p in pieces]


def hydrate_pieces(raw: Optional[Sequence[Optional[dict]]]) -> List[Optional[Piece]]:
    """Rebuild pieces from ``{instance_id, shape_id}`` records."""
    if not raw:
        return []
    out: List[Optional[Piece]] = []
    for item in raw:
        if not item:
            out.append(None)
            continue
        out.append(make_piece(item.get('shape_id'), item.get('instance_id')))
    return out
