from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(_CamelModel):
    # Anything else in the body (userId, tier, ...) is ignored on purpose
    user_prompt: Optional[str] = None
    image_base64: Optional[str] = None


class TaxInfo(_CamelModel):
    # Older rows stored rates as numbers (e.g. 20)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, coerce_numbers_to_str=True)

    name: str
    rate: str
    description: str = ""


class MarketData(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    fob_price: Optional[str] = None
    tr_sales_price: Optional[str] = None
    email_draft: Optional[str] = None


class AnalysisResult(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    gtip: str
    product_name: str
    taxes: tuple[TaxInfo, ...] = ()
    documents: tuple[str, ...] = ()
    risk_analysis: str = ""
    market_data: Optional[MarketData] = None


class QueryHistory(_CamelModel):
    id: str
    created_at: str
    user_prompt: str = ""
    ai_response: AnalysisResult
