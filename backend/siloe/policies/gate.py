FREE_STUDY_LIMIT = 3


def needs_subscription(study_count: int, has_active_subscription: bool, free_limit: int = FREE_STUDY_LIMIT) -> bool:
    """True when the free studies are used up and nothing is subscribed.

    Must be evaluated before the counter is incremented for the attempted
    study; only an allowed attempt may increment.
    """
    return study_count >= free_limit and not has_active_subscription
