"""Pydantic request/response models for coin endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CoinBalanceResponse(BaseModel):
    balance: int
    updated_at: datetime | None = None


class CoinTransactionEntry(BaseModel):
    id: int
    amount: int
    type: str
    description: str | None = None
    created_at: datetime


class CoinTransactionsResponse(BaseModel):
    transactions: list[CoinTransactionEntry]


class SpendCoinsRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=256)


class CoinMutationResponse(BaseModel):
    success: bool = True
    balance: int
    transaction: CoinTransactionEntry
