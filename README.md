# scenegraph

Building blocks for predicting 3D semantic scene graphs from incrementally segmented scans. A scan is split into segments. Each segment is a node that holds surfels. A graph network classifies the nodes and the relationships between neighbouring nodes.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `scenegraph.memory`

`MemoryBlock` is a typed buffer with one, two or three dimensions, built on a numpy array (`block.array`).

- `DataType` selects the element type: `FLOAT` (float32), `INT` (int32) or `INT64_T`.
- Element access:
  - `at(...)` reads by flat index or by one index per dimension, with bounds checks.
  - `row(x)` and `col(y)` return writable views of a two-dimensional block.
  - Indexing goes straight to the array.
- Sizing:
  - `resize` reallocates with zeros unless the type and size are unchanged.
  - `conservative_resize` keeps the leading contents.
- `MemoryBlock.wrap(array)` wraps an existing array without copying it.

### `scenegraph.math_util`

- `block_sum`, `block_mean` and `stddev` work over strided records. `stddev` is the population deviation.
- `mean` takes column means of a two-dimensional block.
- `points_stddev` gives the per-axis deviation of an `(N, 3)` array.
- `normalize` centres the points in place and scales them into the unit ball.

### `scenegraph.data_util`

Geometry descriptors:

- `compute_bbox` and `compute_dims` give the bounding box and its extent.
- `compute_descriptor` gives 11 values: centroid, standard deviation, extent, volume and longest side.
- `compute_edge_descriptor` gives, for each edge, the offsets of centroid and spread and the log ratios of the sizes.

Message-passing helpers:

- `collect` and `collect_rows` gather records.
- `index_aggr` scatters records, combining them by `AggrMode.ADD`, `MAX` or `MEAN`.
- `concat` joins records of two arrays.
- `relu` clamps negatives, in place for arrays and blocks.
- `get_multi_prediction` returns, for each row, the classes whose score is not below a threshold.

### `scenegraph.params`

`ParamLoader(path, name_args="args.json")` reads a model folder. `path` is used as a prefix, so give it a trailing `/`.

- Entries of `args.json` whose key contains `model_` become `ModelParams`, holding the path and the input and output names. They are stored in `model_params`.
- Scalar values go to `params`. Other objects are searched recursively.
- `classes.txt` fills `labels` and `relationships.txt` fills `relationships`, each as a dict from index to name.

`load_args` and `read_lines` can also be used on their own.

### `scenegraph.tensor_print`

- `format_vector` renders a matrix as text, eliding the middle rows and columns of large ones.
- `format_shape` renders a shape.
- `total_size` gives the number of elements for a list of dimensions.

### `scenegraph.eat_gcn`

`EatGCN(path, sessions, verbose=False)` runs the edge-attention graph network.

- `sessions` supplies the sub-networks in one of two forms:
  - a mapping from model name to a runner, where a runner is a callable that takes a list of arrays and returns a list of arrays;
  - a factory, called with each model's full path and its `ModelParams`.
- `Op` names the encoders and classifiers, and `GcnOp` names the per-layer attention and propagation models.
- `run(input_nodes, descriptor, edge_index)` returns the object class scores and the relationship scores as two `MemoryBlock`s.
- `concat_obj_feature` appends descriptor values to the object features.

### `scenegraph.node`

`Node` is a segment of the scene. Surfels are any objects with `label`, `pos`, `normal`, `color`, `is_stable` and `is_valid` attributes.

- `add` and `remove` keep the centroid and bounding box up to date, and reuse freed indices.
- `check_connectivity` tests whether two bounding boxes overlap within a margin. It can also update the neighbour sets of both nodes.
- `update_prediction` merges class scores, either by overwriting them or by weighted fusion with weights capped at 100. `label()` returns the best class; it is `"unknown"` until the first prediction.
- `update_selected_node` samples stable, valid surfels using the node's `rng` and recomputes the shape statistics.

### `scenegraph.scan3r`

`Scan3RLoader(path)` reads the 3RScan metadata file into `ScanInfo`, `Ambiguity` and `MovedObject` records. It fills these attributes:

- `scaninfos`
- `rescan_to_reference`
- `reference_to_rescans`

Transforms of moved rigid objects are stored inverted, so that they map rescan to reference.

### `scenegraph.scan_objects`

Dataset-side helpers for rendered scans:

- `MeshRenderType` with `detect_render_type` chooses between the ScanNet and 3RScan layouts from the folder and scan names.
- `mesh_paths` gives the mesh files of a scan.
- `load_objects` reads `objects.json` into `SceneObjects`.
- `rgb_to_hex` packs colours.
- `label_to_instance` maps label images to instance ids. It reads pixel channels as BGR.
- `instance_bounding_boxes` maps label images to instance ids and per-instance pixel boxes. It reads pixel channels as RGB.
- `linearize_depth` turns depth-buffer values into millimetres, with -1 where nothing was hit.

## Example

```python
import numpy as np
from scenegraph.memory import MemoryBlock
from scenegraph.data_util import compute_descriptor

points = MemoryBlock.wrap(np.random.rand(100, 3).astype(np.float32))
descriptor = compute_descriptor(points)  # centroid, std, dims, volume, length
```

```python
from scenegraph.scan3r import Scan3RLoader

loader = Scan3RLoader("data/3RScan.json")
for rescan, reference in loader.rescan_to_reference.items():
    print(rescan, "->", reference)
```

## What this package does not do

- It does not execute neural networks itself. `EatGCN` calls the runners you pass in.
- It does not render meshes. The helpers in `scan_objects` work on label and depth images that you produce elsewhere.
- It has no scene graph container and no background prediction loop that drives the nodes over time.
- It has no command-line program.