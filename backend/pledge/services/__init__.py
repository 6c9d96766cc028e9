"""External service clients (payment gateway, financial-data provider)."""
