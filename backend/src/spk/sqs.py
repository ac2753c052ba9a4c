"""
SQS utility functions for message operations.
"""
import boto3
import json
from typing import List, Dict, Any
from .config import config
from .logging import logger

# Initialize SQS client lazily
_sqs_client = None


def get_sqs_client():
    """Get or create SQS client."""
    global _sqs_client
    if _sqs_client is None:
        _sqs_client = boto3.client('sqs', region_name=config.AWS_REGION)
    return _sqs_client


def send_message(queue_url: str, message_body: Dict[str, Any]) -> bool:
    """
    Send a single message to SQS queue.

    Args:
        queue_url: SQS queue URL
        message_body: Message body as dict (will be JSON serialized)

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        get_sqs_client().send_message(
            QueueUrl=queue_url,
            MessageBody=json.dumps(message_body, default=str)
        )
        logger.info(f"Message sent to {queue_url}")
        return True
    except Exception as e:
        logger.error(f"Error sending message to SQS: {e}")
        return False


def send_message_batch(queue_url: str, messages: List[Dict[str, Any]]) -> List[int]:
    """
    Send multiple messages to SQS queue (max 10 per batch).

    Args:
        queue_url: SQS queue URL
        messages: List of message bodies

    Returns:
        Indexes (into messages) of the messages that could not be sent
    """
    failed = []
    # SQS batch limit is 10 messages
    for start in range(0, len(messages), 10):
        batch = messages[start:start + 10]
        entries = [
            {
                'Id': str(start + idx),
                'MessageBody': json.dumps(msg, default=str)
            }
            for idx, msg in enumerate(batch)
        ]

        try:
            response = get_sqs_client().send_message_batch(
                QueueUrl=queue_url,
                Entries=entries
            )
        except Exception as e:
            logger.error(f"Error sending batch to SQS: {e}")
            failed.extend(range(start, start + len(batch)))
            continue

        if response.get('Failed'):
            logger.warning(f"Some messages failed: {response['Failed']}")
            failed.extend(int(entry['Id']) for entry in response['Failed'])

    if not failed:
        logger.info(f"Sent {len(messages)} messages to {queue_url}")
    return failed
