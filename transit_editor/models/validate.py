"""Checks applied to network/schedule tables when they cross the I/O boundary."""

from __future__ import annotations

import pandas as pd

from transit_editor.models.schemas import TableSchema


def _check_columns(df: pd.DataFrame, schema: TableSchema, *, allow_extra_columns: bool) -> None:
    missing = [c for c in schema.required_columns if c not in df.columns]
    if missing:
        raise ValueError(f"{schema.name}: missing required columns: {missing}")
    if allow_extra_columns:
        return
    extra = sorted(set(df.columns) - schema.allowed_columns())
    if extra:
        raise ValueError(f"{schema.name}: unexpected columns: {extra}")


def _coerce(df: pd.DataFrame, schema: TableSchema) -> None:
    for col in [c for c in schema.dtypes if c in df.columns]:
        dtype = schema.dtypes[col]
        try:
            df[col] = df[col].astype(dtype)
        except (TypeError, ValueError) as exc:
            raise TypeError(f"{schema.name}: column '{col}' is not convertible to {dtype}: {exc}") from exc


def _check_non_null(df: pd.DataFrame, schema: TableSchema) -> None:
    na_counts = {c: int(df[c].isna().sum()) for c in schema.non_null if c in df.columns}
    na_counts = {c: n for c, n in na_counts.items() if n}
    if na_counts:
        raise ValueError(f"{schema.name}: NA values in non-null columns: {na_counts}")


def _check_unique(df: pd.DataFrame, schema: TableSchema, key: list[str]) -> None:
    repeated = df.duplicated(subset=key, keep=False)
    if repeated.any():
        examples = df.loc[repeated, key].drop_duplicates().head(5).to_dict(orient="records")
        raise ValueError(f"{schema.name}: duplicate {key} values, e.g. {examples}")


def validate_df(
    df: pd.DataFrame,
    schema: TableSchema,
    *,
    coerce_dtypes: bool = True,
    allow_extra_columns: bool = True,
    unique: tuple[str, ...] = (),
) -> pd.DataFrame:
    """Return a checked copy of `df`, cast to the schema's pandas nullable dtypes.

    `unique` is a key (one or more columns) that must not repeat, e.g. `("link_id",)`.
    """
    _check_columns(df, schema, allow_extra_columns=allow_extra_columns)
    out = df.copy()
    if coerce_dtypes:
        _coerce(out, schema)
    _check_non_null(out, schema)
    if unique:
        _check_unique(out, schema, list(unique))
    return out
