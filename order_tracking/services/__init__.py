"""
                        Services Module

Contains the business logic behind the API.

Services:
    - geo: distance/ETA estimation and the consumer location provider
    - lifecycle: order and delivery status transition rules
    - orders: persistence of checkout and transitions
    - tracking: live ETA session, polling client and tracker tasks
"""
