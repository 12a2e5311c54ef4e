from .premium_expiry import start_premium_expiry_job, run_premium_expiry

__all__ = ['start_premium_expiry_job', 'run_premium_expiry']
