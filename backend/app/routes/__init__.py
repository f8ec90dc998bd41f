from . import (
    health as health,
    payments as payments,
    prometheus as prometheus,
    sessions as sessions,
    subscriptions as subscriptions,
)
