# backend/sati/core/constants.py
"""Platform-wide constants."""

BRAND_NAME = "SATI Centro de Consulta"

# System configuration keys consumed by the admission engine
ADVANCE_BOOKING_DAYS = "advance_booking_days"
MAX_ACTIVE_BOOKINGS = "max_active_bookings"
MAX_BOOKING_DURATION_HOURS = "max_booking_duration_hours"
CANCELLATION_HOURS_NOTICE = "cancellation_hours_notice"

# key -> (default value, description)
SYSTEM_CONFIG_DEFAULTS = {
    ADVANCE_BOOKING_DAYS: (0, "Días mínimos de anticipación para reservar"),
    MAX_ACTIVE_BOOKINGS: (8, "Máximo de reservas confirmadas simultáneas por usuario"),
    MAX_BOOKING_DURATION_HOURS: (4, "Horas consecutivas máximas por reserva"),
    CANCELLATION_HOURS_NOTICE: (24, "Horas mínimas de anticipación para cancelar"),
}

ALLOWED_CURRENCIES = frozenset({"mxn", "usd", "eur"})

PAYMENT_EVENT_PAYLOAD_MAX_CHARS = 4000
PAYMENT_CONCEPT_MAX_CHARS = 500
MOVEMENT_CONCEPT_MAX_CHARS = 200
RECENT_MOVEMENTS_LIMIT = 10
