from pydantic import BaseModel


class StripeConfig(BaseModel):
    """Configuration for the Stripe payment intents client."""

    paper_mode: bool = True
    currency: str = "usd"
    max_retries: int = 3
