from pydantic import BaseModel, Field


class FareBreakdown(BaseModel):
    """Detailed breakdown of a ride fare and its per-passenger split."""

    base_fare: float = Field(ge=0)
    distance_fare: float = Field(ge=0)
    total_fare: float = Field(ge=0)
    discount: float = Field(ge=0, le=40, description="Pool discount as a percentage")
    shared_fare: float = Field(ge=0)
    fare_per_passenger: float = Field(ge=0)
    currency: str


class FareCalculator:
    """Calculates ride fares with a passenger-count discount."""

    BASE_FARE = 50.0
    PER_KM_RATE = 12.0
    DISCOUNT_PER_EXTRA_PASSENGER = 0.1
    MAX_DISCOUNT = 0.4
    CURRENCY = "INR"

    def calculate(self, distance_km: float, passenger_count: int = 1) -> FareBreakdown:
        """
        Calculate fare for a ride.

        Fare is calculated once at booking time from the estimated distance and
        the booking's own passenger count. It is not recomputed when the ride
        is later merged into a pool.
        """
        if distance_km < 0:
            raise ValueError("Distance must be non-negative")
        if passenger_count < 1:
            raise ValueError("Passenger count must be at least 1")

        distance_fare = distance_km * self.PER_KM_RATE
        total_fare = self.BASE_FARE + distance_fare

        discount = 0.0
        shared_fare = total_fare
        if passenger_count > 1:
            discount = min(
                self.MAX_DISCOUNT,
                self.DISCOUNT_PER_EXTRA_PASSENGER * (passenger_count - 1),
            )
            shared_fare = total_fare * (1 - discount)

        return FareBreakdown(
            base_fare=self.BASE_FARE,
            distance_fare=distance_fare,
            total_fare=total_fare,
            discount=discount * 100,
            shared_fare=shared_fare,
            fare_per_passenger=shared_fare / passenger_count,
            currency=self.CURRENCY,
        )


def estimate_duration_minutes(distance_km: float, average_speed_kmh: float = 40.0) -> int:
    """Estimated travel time in whole minutes at a constant average speed."""
    return round(distance_km / average_speed_kmh * 60)
