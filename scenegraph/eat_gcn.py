"""Edge-attention graph network that runs a set of exported sub-networks."""

from __future__ import annotations

import enum
import sys
from collections.abc import Mapping
from typing import Callable, Sequence, Union

import numpy as np

from scenegraph import data_util
from scenegraph.data_util import AggrMode
from scenegraph.memory import DataType, MemoryBlock
from scenegraph.params import ModelParams, ParamLoader
from scenegraph.tensor_print import format_shape, format_vector

Runner = Callable[[Sequence[np.ndarray]], Sequence[np.ndarray]]
RunnerFactory = Callable[[str, ModelParams], Runner]

_DESCRIPTOR_OFFSET = 3
_DESCRIPTOR_TAIL = 8


class Op(enum.Enum):
    """Encoders and classifiers, named by their model key."""

    ENC_OBJ = "obj_pnetenc"
    ENC_REL = "rel_pnetenc"
    CLS_OBJ = "obj_pnetcls"
    CLS_REL = "rel_pnetcls"


class GcnOp(enum.Enum):
    """Per-layer graph operations, named by their model key suffix."""

    ATTEN = "edgeatten_MultiHeadedEdgeAttention"
    PROP = "edgeatten_prop"


def _array(data) -> np.ndarray:
    if isinstance(data, MemoryBlock):
        return data.array
    return np.asarray(data)


def concat_obj_feature(n_node: int, dim_obj_feature: int, obj_feature, descriptor) -> MemoryBlock:
    """Append descriptor columns 3..8 and the logs of columns 9 and 10 to each object feature."""
    desc = _array(descriptor)
    if desc.ndim != 2 or desc.shape[1] < _DESCRIPTOR_OFFSET + _DESCRIPTOR_TAIL:
        raise ValueError("descriptor needs at least 11 columns")
    if desc.shape[0] < n_node:
        raise IndexError("exceed")
    features = np.asarray(_array(obj_feature), dtype=np.float32).reshape(-1)
    if features.size < n_node * dim_obj_feature:
        raise IndexError("exceed")
    tail = desc[:n_node, _DESCRIPTOR_OFFSET:_DESCRIPTOR_OFFSET + _DESCRIPTOR_TAIL].astype(np.float32)
    out = MemoryBlock(DataType.FLOAT, (n_node, dim_obj_feature + _DESCRIPTOR_TAIL))
    out.array[:, :dim_obj_feature] = features[: n_node * dim_obj_feature].reshape(
        n_node, dim_obj_feature
    )
    out.array[:, dim_obj_feature:dim_obj_feature + 6] = tail[:, :6]
    with np.errstate(divide="ignore", invalid="ignore"):
        out.array[:, dim_obj_feature + 6] = np.log(tail[:, 6])
        out.array[:, dim_obj_feature + 7] = np.log(tail[:, 7])
    return out


def _relu_prefix(array: np.ndarray, count: int) -> None:
    flat = array.reshape(-1)
    data_util.relu(flat[:count])


class EatGCN(ParamLoader):
    """Runs object/relationship encoders, attention layers and classifiers.

    ``sessions`` is either a mapping from model name to a runner, or a factory
    called with the full model path and its parameters for every model listed
    in the argument file. A runner takes a list of arrays and returns a list of
    arrays.
    """

    def __init__(
        self,
        path: str,
        sessions: Union[Mapping[str, Runner], RunnerFactory],
        verbose: bool = False,
    ) -> None:
        super().__init__(path)
        self.verbose = verbose
        self.sessions: dict[str, Runner] = self._init_sessions(sessions)

    def _init_sessions(self, sessions) -> dict[str, Runner]:
        if isinstance(sessions, Mapping):
            return dict(sessions)
        if callable(sessions):
            return {
                name: sessions(self.pth_base + params.model_path, params)
                for name, params in self.model_params.items()
            }
        raise TypeError("sessions must be a mapping of runners or a runner factory")

    def _execute(self, name: str, inputs: Sequence) -> list[np.ndarray]:
        if len(self.model_params[name].input_names) != len(inputs):
            raise ValueError("input size mismatch!")
        runner = self.sessions[name]
        return [np.asarray(output) for output in runner([np.asarray(x) for x in inputs])]

    def compute_gcn(self, op: GcnOp, level: int, inputs: Sequence) -> list[np.ndarray]:
        """Run the graph operation ``op`` of layer ``level``."""
        name = f"gcn_{int(level)}_{GcnOp(op).value}"
        return self._execute(name, inputs)

    def compute(self, op: Op, inputs: Sequence) -> list[np.ndarray]:
        """Run an encoder or classifier."""
        return self._execute(Op(op).value, inputs)

    def _show(self, name: str, data, dims) -> None:
        if self.verbose:
            sys.stderr.write(format_vector(name, data, dims))

    def run(self, input_nodes, descriptor, edge_index) -> tuple[MemoryBlock, MemoryBlock]:
        """Predict class scores of every node and relationship scores of every edge."""
        nodes = np.asarray(_array(input_nodes), dtype=np.float32)
        desc = _array(descriptor)
        edges = np.asarray(_array(edge_index), dtype=np.int64)
        if nodes.ndim != 3:
            raise ValueError("input nodes must be three-dimensional")
        if desc.ndim != 2 or edges.ndim != 2 or edges.shape[0] != 2:
            raise ValueError("descriptor must be 2-D and edge index must have two rows")

        dim_obj_f = int(self.params["dim_o_f"])
        dim_rel_f = int(self.params["dim_r_f"])
        n_edge = edges.shape[1]
        n_node, d_pts, n_pts = nodes.shape
        d_edge = desc.shape[1]
        source_to_target = False

        edge_descriptor = data_util.compute_edge_descriptor(desc, edges, source_to_target)
        if self.verbose:
            self._show("Edges", edges, edges.shape)
            self._show("descriptor", desc, desc.shape)
            if n_node:
                self._show("input_nodes", nodes[0], (d_pts, n_pts))
            self._show("edge_descriptor", edge_descriptor.array, edge_descriptor.shape)

        rel_input = edge_descriptor.array.reshape(n_edge, d_edge, 1)
        out_enc_rel = self.compute(Op.ENC_REL, [rel_input])
        if self.verbose:
            sys.stderr.write(format_shape("enc_rel", out_enc_rel[0].shape) + "\n")
            self._show("out_enc_rel", out_enc_rel[0], out_enc_rel[0].shape[:2])

        out_enc_obj = self.compute(Op.ENC_OBJ, [nodes])
        dim_obj_feature = int(out_enc_obj[0].shape[1])
        self._show("obj_feature", out_enc_obj[0], out_enc_obj[0].shape[:2])

        obj_f = concat_obj_feature(n_node, dim_obj_feature, out_enc_obj[0], desc).array
        rel_f = np.array(out_enc_rel[0], dtype=np.float32)

        if self.params.get("USE_GCN"):
            n_layers = int(self.params["n_layers"])
            i_i, i_j = (1, 0) if source_to_target else (0, 1)
            for level in range(n_layers):
                obj_f_i = data_util.collect(obj_f, edges[i_i], dim_obj_f, n_edge).reshape(
                    n_edge, dim_obj_f
                )
                obj_f_j = data_util.collect(obj_f, edges[i_j], dim_obj_f, n_edge).reshape(
                    n_edge, dim_obj_f
                )
                self._show("obj_f_i", obj_f_i, (n_edge, dim_obj_f))
                self._show("obj_f_j", obj_f_j, (n_edge, dim_obj_f))

                atten = self.compute_gcn(GcnOp.ATTEN, level, [obj_f_i, rel_f, obj_f_j])
                self._show("output_atten", atten[0], atten[0].shape[:2])
                self._show("output_edge", atten[1], atten[1].shape[:2])

                dim_hidden = int(atten[0].shape[1])
                aggregated = data_util.index_aggr(
                    atten[0], edges[i_i], dim_hidden, n_edge, n_node, AggrMode.MAX
                )
                self._show("xx_aggr", aggregated, (n_node, dim_hidden))

                joined = data_util.concat(
                    obj_f, aggregated, n_node, dim_obj_f, dim_hidden, dim_obj_f, dim_hidden
                ).reshape(n_node, dim_obj_f + dim_hidden)
                self._show("xxx_concat", joined, (n_node, dim_obj_f + dim_hidden))

                prop = self.compute_gcn(GcnOp.PROP, level, [joined])
                self._show("gcn_nn2_outputs", prop[0], prop[0].shape[:2])

                obj_f = np.array(prop[0], dtype=np.float32)
                rel_f = np.array(atten[1], dtype=np.float32)
                if level + 1 < n_layers:
                    _relu_prefix(obj_f, n_node * dim_obj_f)
                    _relu_prefix(rel_f, n_edge * dim_rel_f)

        objcls = self.compute(Op.CLS_OBJ, [obj_f])
        relcls = self.compute(Op.CLS_REL, [rel_f])
        self._show("objcls_prob", objcls[0], objcls[0].shape[:2])
        self._show("relcls_prob", relcls[0], relcls[0].shape[:2])

        num_classes = int(self.params["num_classes"])
        num_relationships = int(self.params["num_relationships"])
        if objcls[0].size != num_classes * n_node:
            raise ValueError("object classifier output has an unexpected size")
        if relcls[0].size != num_relationships * n_edge:
            raise ValueError("relationship classifier output has an unexpected size")

        output_obj = MemoryBlock(DataType.FLOAT, (n_node, num_classes))
        output_rel = MemoryBlock(DataType.FLOAT, (n_edge, num_relationships))
        output_obj.array[:] = np.asarray(objcls[0], dtype=np.float32).reshape(n_node, num_classes)
        output_rel.array[:] = np.asarray(relcls[0], dtype=np.float32).reshape(
            n_edge, num_relationships
        )
        return output_obj, output_rel