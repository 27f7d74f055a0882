"""
平台文档模块

提供光学平台的保存和加载功能。文档是一个带版本号的 JSON 对象：

    {
      "version": "1.2",
      "bench": {"wavelength": ..., "leftBoundary": ..., "rightBoundary": ...},
      "targetBeam": {...},
      "fits": [{"name": ..., "dataType": ..., "color": ..., "orientation": ...,
                "data": [[position, value], ...]}, ...],
      "optics": [{"type": "lens", "id": 3, "position": ..., "angle": ...,
                  "orientation": ..., "name": "L1", "absoluteLock": false,
                  "relativeLockParent": 2, "focal": ...}, ...],
      "cavity": {"ringCavity": true, "closingLength": null, "optics": [...]}
    }

加载分两步：先创建所有元件，再解析相对锁定父元件 id（父元件可能在文件中
排在子元件之后）。文件中的 id 只用于解析引用，加载后的元件由平台重新分配 id。

作者：高斯光束平台项目
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from . import locking
from .beam import Orientation, TargetBeam
from .bench import OpticsBench, REQUIRED_PARAMS
from .exceptions import DocumentError
from .fit import FitDataType
from .optics import Optics, OpticsType


DOCUMENT_VERSION = "1.2"
SUPPORTED_VERSIONS = ("1.2",)

_AXES = (Orientation.Horizontal, Orientation.Vertical)


def _type_fields(optics: Optics) -> Dict[str, Any]:
    """元件种类特有的字段"""
    p = optics.params
    kind = optics.type
    if kind == OpticsType.CreateBeam:
        return {
            "waist": list(p.waist),
            "verticalOffset": p.vertical_offset,
            "index": p.index,
            "M2": p.M2,
            "beamOrientation": p.orientation.value,
        }
    fields: Dict[str, Any] = {}
    for key in REQUIRED_PARAMS[kind]:
        fields[key] = optics.width if key == "width" else getattr(p, key)
    return fields


def optics_to_dict(optics: Optics) -> Dict[str, Any]:
    data = {
        "type": optics.type.value,
        "id": optics.id,
        "position": optics.position,
        "angle": optics.angle,
        "orientation": optics.orientation.value,
        "name": optics.name,
        "absoluteLock": optics.absolute_lock,
    }
    if optics.lock_parent is not None:
        data["relativeLockParent"] = optics.lock_parent
    data.update(_type_fields(optics))
    return data


def bench_to_dict(bench: OpticsBench) -> Dict[str, Any]:
    """把平台转换为可 JSON 序列化的字典"""
    target = bench.target_beam
    return {
        "version": DOCUMENT_VERSION,
        "bench": {
            "wavelength": bench.wavelength,
            "leftBoundary": bench.left_boundary,
            "rightBoundary": bench.right_boundary,
        },
        "targetBeam": {
            "waist": [target.waist(axis) for axis in _AXES],
            "waistPosition": [target.waist_position(axis) for axis in _AXES],
            "orientation": target.orientation.value,
            "index": target.index,
            "M2": target.M2,
            "overlapCriterion": target.overlap_criterion,
            "minOverlap": target.min_overlap,
            "waistTolerance": target.waist_tolerance,
            "positionTolerance": target.position_tolerance,
        },
        "fits": [
            {
                "name": fit.name,
                "dataType": fit.data_type.value,
                "color": fit.color,
                "orientation": fit.orientation.value,
                "data": [[fit.position(i), fit.value(i)] for i in range(fit.size())],
            }
            for fit in (bench.fit(i) for i in range(bench.n_fit))
        ],
        "optics": [optics_to_dict(optics) for optics in bench.optics_list()],
        "cavity": {
            "ringCavity": bench.cavity.ring_cavity,
            "closingLength": bench.cavity.closing_length,
            "optics": sorted(bench.cavity.optics_ids),
        },
    }


def _require(data: Dict[str, Any], key: str, context: str) -> Any:
    if key not in data:
        raise DocumentError(f"{context} 缺少字段 '{key}'")
    return data[key]


def _enum(enum_type, value: Any, context: str):
    try:
        return enum_type(value)
    except ValueError:
        raise DocumentError(f"{context} 的取值 '{value}' 无效") from None


def _load_source(bench: OpticsBench, data: Dict[str, Any]) -> Optics:
    source = bench.optics(0)
    p = source.params
    waist = _require(data, "waist", "光源")
    p.waist = [float(waist[0]), float(waist[1])]
    p.vertical_offset = float(data.get("verticalOffset", 0.0))
    p.index = float(data.get("index", 1.0))
    p.M2 = float(data.get("M2", 1.0))
    p.orientation = _enum(Orientation, data.get("beamOrientation", "spherical"), "光源取向")
    source.position = float(_require(data, "position", "光源"))
    source.angle = float(data.get("angle", 0.0))
    source.name = data.get("name", source.name)
    source.absolute_lock = bool(data.get("absoluteLock", True))
    return source


def _load_optics(bench: OpticsBench, data: Dict[str, Any]) -> Optics:
    kind = _enum(OpticsType, _require(data, "type", "元件"), "元件类型")
    name = _require(data, "name", "元件")
    params = {key: float(_require(data, key, f"元件 '{name}'")) for key in REQUIRED_PARAMS[kind]}
    optics = bench.create_optics(kind, float(_require(data, "position", f"元件 '{name}'")), **params)
    optics.angle = float(data.get("angle", 0.0))
    optics.set_orientation(_enum(Orientation, data.get("orientation", "spherical"), "元件取向"))
    optics.absolute_lock = bool(data.get("absoluteLock", False))
    if name and bench.optics_by_name(name) is None:
        optics.name = name
    bench.add_optics(optics)
    return optics


def bench_from_dict(data: Dict[str, Any]) -> OpticsBench:
    """由字典重建平台

    异常:
        DocumentError: 文档版本不支持、字段缺失、取值无效或锁定引用悬空
    """
    version = _require(data, "version", "文档")
    if version not in SUPPORTED_VERSIONS:
        raise DocumentError(f"不支持的文档版本 '{version}'")

    settings = _require(data, "bench", "文档")
    bench = OpticsBench(wavelength=float(_require(settings, "wavelength", "平台")))
    bench.set_left_boundary(float(settings.get("leftBoundary", bench.left_boundary)))
    bench.set_right_boundary(float(settings.get("rightBoundary", bench.right_boundary)))

    # 第一遍：创建元件
    optics_data: List[Dict[str, Any]] = _require(data, "optics", "文档")
    created: Dict[int, Optics] = {}
    for entry in optics_data:
        kind = _enum(OpticsType, _require(entry, "type", "元件"), "元件类型")
        if kind == OpticsType.CreateBeam:
            optics = _load_source(bench, entry)
        else:
            optics = _load_optics(bench, entry)
        created[int(_require(entry, "id", "元件"))] = optics

    # 第二遍：解析相对锁定
    registry = {optics.id: optics for optics in bench.optics_list()}
    for entry in optics_data:
        parent_id = entry.get("relativeLockParent")
        if parent_id is None:
            continue
        if parent_id not in created:
            raise DocumentError(f"元件 '{entry.get('name')}' 的锁定父元件 id {parent_id} 不存在")
        if not locking.relative_lock_to(registry, created[int(entry["id"])], created[parent_id]):
            raise DocumentError(f"元件 '{entry.get('name')}' 的锁定关系形成环")

    target_data = data.get("targetBeam")
    if target_data is not None:
        bench.set_target_beam(_load_target(target_data, bench.wavelength))

    for fit_data in data.get("fits", []):
        fit = bench.fit(bench.add_fit(fit_data.get("name", "")))
        fit.data_type = _enum(FitDataType, fit_data.get("dataType", "diameter_e2"), "拟合数据类型")
        fit.color = int(fit_data.get("color", 0))
        fit.orientation = _enum(Orientation, fit_data.get("orientation", "spherical"), "拟合取向")
        for position, value in fit_data.get("data", []):
            fit.add_data(float(position), float(value))

    cavity_data = data.get("cavity")
    if cavity_data is not None:
        bench.cavity.ring_cavity = bool(cavity_data.get("ringCavity", True))
        closing_length = cavity_data.get("closingLength")
        bench.cavity.closing_length = None if closing_length is None else float(closing_length)
        for old_id in cavity_data.get("optics", []):
            if old_id not in created:
                raise DocumentError(f"谐振腔元件 id {old_id} 不存在")
            bench.cavity.add_optics(created[old_id].id)

    bench.compute_beams(0)
    return bench


def _load_target(data: Dict[str, Any], wavelength: float) -> TargetBeam:
    target = TargetBeam(
        wavelength=wavelength,
        index=float(data.get("index", 1.0)),
        M2=float(data.get("M2", 1.0)),
        overlap_criterion=bool(data.get("overlapCriterion", True)),
        min_overlap=float(data.get("minOverlap", 0.98)),
        waist_tolerance=float(data.get("waistTolerance", 0.05)),
        position_tolerance=float(data.get("positionTolerance", 0.1)),
    )
    waist = _require(data, "waist", "目标光束")
    position = _require(data, "waistPosition", "目标光束")
    for axis, w, z in zip(_AXES, waist, position):
        target.set_waist(float(w), axis)
        target.set_waist_position(float(z), axis)
    target.set_orientation(_enum(Orientation, data.get("orientation", "spherical"), "目标光束取向"))
    return target


def save_bench(bench: OpticsBench, path: str) -> None:
    """保存平台到 JSON 文件

    参数:
        bench: 光学平台
        path: 文件路径
    """
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(bench_to_dict(bench), f, indent=2, ensure_ascii=False)


def load_bench(path: str) -> OpticsBench:
    """从 JSON 文件加载平台

    异常:
        DocumentError: 文件不是合法的 JSON 或文档格式错误
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DocumentError(f"JSON 解析失败：{e}", file_path=path) from e
    try:
        return bench_from_dict(data)
    except DocumentError as e:
        raise DocumentError(e.message, file_path=path) from e
