from rest_framework import serializers

from .hos_config import HOSConfig


class TripRequestSerializer(serializers.Serializer):
    current_location = serializers.CharField(max_length=500)
    pickup_location = serializers.CharField(max_length=500)
    dropoff_location = serializers.CharField(max_length=500)
    current_cycle_used = serializers.FloatField(min_value=0)

    # Optional: departure time, defaults to the next whole hour
    start_time = serializers.DateTimeField(required=False)

    def validate_current_cycle_used(self, value):
        max_cycle = HOSConfig.from_settings().max_cycle_hours
        if value > max_cycle:
            raise serializers.ValidationError(f"Ensure this value is less than or equal to {max_cycle:g}.")
        return value
