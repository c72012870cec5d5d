class IncompleteBillError(ValueError):
    """A mandatory bill field (total amount or energy usage) is missing or unusable."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Bill record is missing required fields: {', '.join(self.missing)}")


class MalformedBillingPeriod(ValueError):
    def __init__(self, text):
        self.text = text
        super().__init__(f"Cannot parse billing period: {text!r}")


class ForecastUnavailable(RuntimeError):
    """Solar forecast could not be fetched or parsed. Recovered as 'no solar data'."""
