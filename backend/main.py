from fastapi import FastAPI, UploadFile, File, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from core.config import get_settings
from core.storage import add_dataset, get_session, get_session_hashes, get_session_meta
from core.utils import dedupe_headers
from core.values import column_names, normalize_rows
from server.api import router as dashboard_router
import pandas as pd
import io
import logging
import hashlib
import json
from collections import OrderedDict

logger = logging.getLogger("uvicorn.error")
settings = get_settings()
app = FastAPI(title="Dashboard Builder", description="Turn tabular uploads into dashboards")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount the dashboard API router
app.include_router(dashboard_router)


SAMPLE_ROWS = [
    {"Order ID": "CA-2021-152156", "Date of Purchase": "2021-11-08", "Customer Name": "John Doe", "Product": "Office Chair", "Category": "Furniture", "Quantity": 2, "Unit Price": 100, "Total Sale Amount": 200, "Country": "USA"},
    {"Order ID": "CA-2021-138688", "Date of Purchase": "2021-06-12", "Customer Name": "Jane Smith", "Product": "Laptop", "Category": "Technology", "Quantity": 1, "Unit Price": 1200, "Total Sale Amount": 1200, "Country": "Canada"},
    {"Order ID": "US-2020-108966", "Date of Purchase": "2020-10-11", "Customer Name": "Sam Green", "Product": "Desk Lamp", "Category": "Office Supplies", "Quantity": 5, "Unit Price": 15, "Total Sale Amount": 75, "Country": "USA"},
    {"Order ID": "EU-2022-104443", "Date of Purchase": "2022-01-23", "Customer Name": "Anna Williams", "Product": "Monitor", "Category": "Technology", "Quantity": 2, "Unit Price": 300, "Total Sale Amount": 600, "Country": "Germany"},
]

PREVIEW_CACHE_MAX = 512
_preview_cache: "OrderedDict[tuple, dict]" = OrderedDict()


def _preview_cache_get(key: tuple):
    cached = _preview_cache.get(key)
    if cached is not None:
        _preview_cache.move_to_end(key)
    return cached


def _preview_cache_set(key: tuple, value: dict) -> None:
    _preview_cache[key] = value
    _preview_cache.move_to_end(key)
    if len(_preview_cache) > PREVIEW_CACHE_MAX:
        _preview_cache.popitem(last=False)


def _preview_cache_drop(sid: str, name: str) -> None:
    for k in [k for k in _preview_cache.keys() if k[0] == sid and k[1] == name]:
        _preview_cache.pop(k, None)


def require_session_id(request: Request) -> str:
    sid = request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header.")
    return sid


def _sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _log_response(ctx: str, payload) -> None:
    """Pretty-print JSON-able payloads; fall back to str()."""
    try:
        logger.info("%s response: %s", ctx, json.dumps(payload, indent=2, default=str))
    except (TypeError, ValueError):
        logger.info("%s response (non-serializable): %s", ctx, str(payload))


def _read_csv(content: bytes) -> pd.DataFrame:
    """Read with the pyarrow engine when it copes; plain pandas otherwise."""
    try:
        df = pd.read_csv(io.BytesIO(content), engine="pyarrow", dtype_backend="pyarrow")
    except Exception:
        try:
            df = pd.read_csv(io.BytesIO(content))
        except Exception as e:
            logger.exception("Failed to read CSV")
            raise HTTPException(status_code=400, detail=f"Failed to read CSV: {e}")

    try:
        df = df.convert_dtypes()
    except (KeyError, ValueError) as e:
        # pyarrow date32/date64 columns: go through datetime64 first
        logger.warning("convert_dtypes failed with PyArrow types: %s. Converting manually.", e)
        import pyarrow as pa
        for col in df.columns:
            if hasattr(df[col].dtype, "pyarrow_dtype"):
                pa_type = df[col].dtype.pyarrow_dtype
                if pa.types.is_date(pa_type) or pa.types.is_timestamp(pa_type):
                    df[col] = pd.to_datetime(df[col])
        df = df.convert_dtypes()
    return df


def _file_headers(content: bytes, df: pd.DataFrame) -> list:
    """
    Unique column names taken from the raw header line.

    pandas mangles repeats to "Name.1"; we want "Name (2)", and blank headers
    become "_col_N" (1-based position).
    """
    try:
        raw = pd.read_csv(io.BytesIO(content), header=None, nrows=1, dtype=str).iloc[0].tolist()
    except Exception:
        raw = list(df.columns)
    if len(raw) != len(df.columns):
        raw = list(df.columns)
    names = dedupe_headers(raw)
    return [n if n is not None else f"_col_{i + 1}" for i, n in enumerate(names)]


@app.post("/upload")
async def upload(request: Request, file: UploadFile = File(...)):
    sid = require_session_id(request)
    content = await file.read()

    file_size = len(content)
    if file_size > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds the {settings.max_upload_mb} MB upload limit.")
    filename = file.filename or "table.csv"
    ext = (filename.rsplit(".", 1)[1].lower() if "." in filename else "").strip()

    # duplicate detection (by content hash)
    file_hash = _sha256_bytes(content)
    sess_hashes = get_session_hashes(sid)
    if file_hash in sess_hashes:
        existing_name = sess_hashes[file_hash]
        dup_resp = {
            "ok": False,
            "duplicate": True,
            "table": existing_name,
            "detail": "Duplicate upload: this file was already uploaded for this session.",
        }
        _log_response("UPLOAD (duplicate)", dup_resp)
        return JSONResponse(status_code=409, content=dup_resp)

    df = _read_csv(content)
    headers = _file_headers(content, df)
    df.columns = headers
    rows = normalize_rows(df)
    if not rows:
        raise HTTPException(status_code=400, detail="The uploaded file has no data rows.")

    base = filename.rsplit(".", 1)[0] if filename else "table"
    name = add_dataset(
        sid, base, rows, headers,
        meta={"file_name": filename, "file_ext": ext, "file_size": file_size},
        content_hash=file_hash,
    )
    _preview_cache_drop(sid, name)

    meta = get_session_meta(sid)[name]
    resp = {
        "ok": True,
        "table": name,
        "rows": len(rows),
        "columns": headers,
        "is_large": len(rows) > settings.data_warning_threshold,
        "meta": meta,
    }
    _log_response("UPLOAD", {**resp, "columns": len(headers)})
    return resp


@app.post("/datasets/sample")
async def load_sample(request: Request):
    sid = require_session_id(request)
    rows = normalize_rows(SAMPLE_ROWS)
    headers = column_names(rows)
    name = add_dataset(sid, "sample_data", rows, headers, meta={"file_name": "sample_data.csv", "source": "sample"})
    _preview_cache_drop(sid, name)
    return {"ok": True, "table": name, "rows": len(rows), "columns": headers}


@app.get("/datasets")
async def datasets(request: Request):
    sid = require_session_id(request)
    sess = get_session(sid)
    meta_store = get_session_meta(sid)

    info = []
    for name, rows in sess.items():
        meta = meta_store.get(name) or {
            "n_rows": len(rows),
            "columns": column_names(rows),
        }
        info.append({"name": name, **meta})

    resp = {"datasets": info}
    _log_response("DATASETS", {"datasets": [d["name"] for d in info]})
    return resp


@app.get("/datasets/{name}/preview")
async def dataset_preview(request: Request, name: str, offset: int = 0, limit: int = 50):
    """Get a page of rows with cursor pagination."""
    sid = require_session_id(request)
    sess = get_session(sid)

    if name not in sess:
        raise HTTPException(status_code=404, detail=f"Dataset '{name}' not found")

    # Cap limit at 100 rows per request
    limit = max(1, min(limit, 100))
    offset = max(0, offset)

    cache_key = (sid, name, offset, limit)
    cached = _preview_cache_get(cache_key)
    if cached is not None:
        return cached

    rows = sess[name]
    total_rows = len(rows)
    end = min(offset + limit, total_rows)
    has_more = end < total_rows

    resp = {
        "table": name,
        "columns": get_session_meta(sid).get(name, {}).get("columns") or column_names(rows),
        "rows": rows[offset:end],
        "total_rows": total_rows,
        "offset": offset,
        "limit": limit,
        "returned_rows": max(0, end - offset),
        "has_more": has_more,
        "next_offset": end if has_more else None,
    }

    _preview_cache_set(cache_key, resp)
    return resp
