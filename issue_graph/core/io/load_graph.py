from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, cast

import yaml

from issue_graph.core.errors import GraphLoadError, GraphValidationError
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.model import ISSUE_STATUSES, DurationEstimate, Issue, IssueStatus


def _read_document(path: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise GraphLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise GraphLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise GraphLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except GraphLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise GraphLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise GraphLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )
    return data


def load_graph(path: str) -> dict[str, Any]:
    """Load a YAML/JSON issue graph file.

    Returns a dict with keys: schema_version, issues, optional critical_path.
    Does not coerce types; `build_engine` owns shape checking.
    """
    data = _read_document(path)

    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "issues": data.get("issues"),
    }
    if "critical_path" in data:
        normalized["critical_path"] = data.get("critical_path")

    normalized["__file__"] = path
    return normalized


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def parse_estimate(
    raw: Any,
    file: Optional[str],
    path: str,
) -> tuple[Optional[DurationEstimate], list[GraphValidationError]]:
    """Shape-check a duration estimate mapping."""
    if not isinstance(raw, dict):
        return None, [
            GraphValidationError(
                code="E_INVALID_TYPE",
                message="estimate must be an object",
                file=file,
                path=path,
            )
        ]

    errors: list[GraphValidationError] = []
    values: dict[str, float] = {}
    for key in ("min_days", "expected_days", "max_days"):
        v = raw.get(key)
        if not _is_number(v) or v < 0:
            errors.append(
                GraphValidationError(
                    code="E_INVALID_ESTIMATE",
                    message=f"{key} is required and must be a non-negative number",
                    file=file,
                    path=f"{path}.{key}",
                )
            )
        else:
            values[key] = float(v)

    confidence = raw.get("confidence", 0.5)
    if not _is_number(confidence) or not 0 <= confidence <= 1:
        errors.append(
            GraphValidationError(
                code="E_INVALID_ESTIMATE",
                message="confidence must be a number in [0, 1]",
                file=file,
                path=f"{path}.confidence",
            )
        )

    if errors:
        return None, errors

    if not values["min_days"] <= values["expected_days"] <= values["max_days"]:
        return None, [
            GraphValidationError(
                code="E_INVALID_ESTIMATE",
                message="estimate must satisfy min_days <= expected_days <= max_days",
                file=file,
                path=path,
            )
        ]

    factors = raw.get("factors") or []
    return (
        DurationEstimate(
            min_days=values["min_days"],
            expected_days=values["expected_days"],
            max_days=values["max_days"],
            confidence=float(confidence),
            reasoning=str(raw.get("reasoning") or ""),
            factors=tuple(str(f) for f in factors) if isinstance(factors, list) else (),
        ),
        [],
    )


def build_engine(graph: dict[str, Any]) -> tuple[Optional[GraphEngine], list[GraphValidationError]]:
    """Shape-check a loaded document and build a `GraphEngine`.

    Returns (engine, errors). Engine is None when errors exist. Dangling
    dependency ids are accepted here; they are a health finding.
    """
    file = cast(Optional[str], graph.get("__file__"))
    errors: list[GraphValidationError] = []

    schema_version = graph.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        errors.append(
            GraphValidationError(
                code="E_REQUIRED_FIELD",
                message="schema_version is required and must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    raw_issues = graph.get("issues")
    if not isinstance(raw_issues, list):
        errors.append(
            GraphValidationError(
                code="E_REQUIRED_FIELD",
                message="issues is required and must be an array",
                file=file,
                path="issues",
            )
        )
        return None, _sorted(errors)

    issues: list[Issue] = []
    seen: set[str] = set()

    for i, raw in enumerate(raw_issues):
        issue_path = f"issues[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="issue must be an object",
                    file=file,
                    path=issue_path,
                )
            )
            continue

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            errors.append(
                GraphValidationError(
                    code="E_REQUIRED_FIELD",
                    message="id is required and must be a non-empty string",
                    file=file,
                    path=f"{issue_path}.id",
                )
            )
            continue

        if iid in seen:
            errors.append(
                GraphValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate issue id: {iid}",
                    file=file,
                    path=f"{issue_path}.id",
                )
            )
            continue
        seen.add(iid)

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(
                GraphValidationError(
                    code="E_REQUIRED_FIELD",
                    message="title is required and must be a non-empty string",
                    file=file,
                    path=f"{issue_path}.title",
                )
            )
            continue

        status = raw.get("status", "open")
        if status not in ISSUE_STATUSES:
            errors.append(
                GraphValidationError(
                    code="E_INVALID_ENUM",
                    message=f"status must be one of {list(ISSUE_STATUSES)}",
                    file=file,
                    path=f"{issue_path}.status",
                )
            )
            continue

        priority = raw.get("priority", 2)
        if not isinstance(priority, int) or isinstance(priority, bool) or not 0 <= priority <= 4:
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="priority must be an integer from 0 to 4",
                    file=file,
                    path=f"{issue_path}.priority",
                )
            )
            continue

        description = raw.get("description") or ""
        if not isinstance(description, str):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="description must be a string",
                    file=file,
                    path=f"{issue_path}.description",
                )
            )
            continue

        deps = raw.get("dependencies") or []
        if not _is_list_of_str(deps):
            errors.append(
                GraphValidationError(
                    code="E_INVALID_TYPE",
                    message="dependencies must be an array of strings",
                    file=file,
                    path=f"{issue_path}.dependencies",
                )
            )
            continue

        estimate: Optional[DurationEstimate] = None
        if raw.get("estimate") is not None:
            estimate, est_errors = parse_estimate(raw["estimate"], file, f"{issue_path}.estimate")
            if est_errors:
                errors.extend(est_errors)
                continue

        issues.append(
            Issue(
                id=iid,
                title=title,
                status=cast(IssueStatus, status),
                priority=priority,
                description=description,
                # ordered set semantics
                dependencies=list(dict.fromkeys(cast(list[str], deps))),
                estimate=estimate,
            )
        )

    critical_path = graph.get("critical_path")
    if critical_path is not None and not _is_list_of_str(critical_path):
        errors.append(
            GraphValidationError(
                code="E_INVALID_TYPE",
                message="critical_path must be an array of strings",
                file=file,
                path="critical_path",
            )
        )

    if errors:
        return None, _sorted(errors)

    return GraphEngine(issues), []


def load_estimates(path: str) -> tuple[dict[str, DurationEstimate], Optional[list[str]]]:
    """Load a duration-estimate provider file.

    Format:
      estimates: [{issue_id: A, min_days: 1, expected_days: 2, max_days: 4, ...}]
      critical_path: [A, B]   # optional, advisory only

    Raises GraphLoadError on unreadable or malformed input.
    """
    data = _read_document(path)

    raw_estimates = data.get("estimates") or []
    if not isinstance(raw_estimates, list):
        raise GraphLoadError(
            code="E_INVALID_TYPE",
            message="estimates must be an array",
            file=path,
            path="estimates",
        )

    out: dict[str, DurationEstimate] = {}
    for i, raw in enumerate(raw_estimates):
        issue_id = raw.get("issue_id") if isinstance(raw, dict) else None
        if not isinstance(issue_id, str) or not issue_id:
            raise GraphLoadError(
                code="E_REQUIRED_FIELD",
                message="issue_id is required and must be a non-empty string",
                file=path,
                path=f"estimates[{i}].issue_id",
            )
        est, errors = parse_estimate(raw, path, f"estimates[{i}]")
        if errors or est is None:
            first = errors[0]
            raise GraphLoadError(code=first.code, message=first.message, file=path, path=first.path)
        out[issue_id] = est

    critical_path = data.get("critical_path")
    if critical_path is not None and not _is_list_of_str(critical_path):
        raise GraphLoadError(
            code="E_INVALID_TYPE",
            message="critical_path must be an array of strings",
            file=path,
            path="critical_path",
        )
    return out, critical_path


def graph_to_dict(engine: GraphEngine, schema_version: str = "0.1.0") -> dict[str, Any]:
    issues: list[dict[str, Any]] = []
    for issue in engine:
        item: dict[str, Any] = {
            "id": issue.id,
            "title": issue.title,
            "status": issue.status,
            "priority": issue.priority,
        }
        if issue.description:
            item["description"] = issue.description
        item["dependencies"] = list(issue.dependencies)
        if issue.estimate is not None:
            est = issue.estimate
            item["estimate"] = {
                "min_days": est.min_days,
                "expected_days": est.expected_days,
                "max_days": est.max_days,
                "confidence": est.confidence,
            }
            if est.reasoning:
                item["estimate"]["reasoning"] = est.reasoning
            if est.factors:
                item["estimate"]["factors"] = list(est.factors)
        issues.append(item)
    return {"schema_version": schema_version, "issues": issues}


def dump_graph_yaml(engine: GraphEngine, path: str, schema_version: str = "0.1.0") -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            graph_to_dict(engine, schema_version),
            f,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )


def _sorted(errors: list[GraphValidationError]) -> list[GraphValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
