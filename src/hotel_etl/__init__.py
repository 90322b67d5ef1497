"""hotel_etl: batch CSV importers for the hotel reference schema."""
