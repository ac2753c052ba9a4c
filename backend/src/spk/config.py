"""
Configuration module for the work-order service.
Loads all environment variables needed by the handlers and the core.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    WORK_ORDERS_TABLE = os.environ.get('WORK_ORDERS_TABLE', '')
    PAYMENTS_TABLE = os.environ.get('PAYMENTS_TABLE', '')
    WORKERS_TABLE = os.environ.get('WORKERS_TABLE', '')

    # SQS Queues
    NOTIFICATIONS_QUEUE_URL = os.environ.get('NOTIFICATIONS_QUEUE_URL', '')

    # Storage backend: 'dynamodb' or 'memory'
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'dynamodb')

    # Payroll
    BULK_PAYMENT_WORKERS = int(os.environ.get('BULK_PAYMENT_WORKERS', '8'))
    PAYROLL_DEFAULT_DAYS = int(os.environ.get('PAYROLL_DEFAULT_DAYS', '10'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


config = Config()
