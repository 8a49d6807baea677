"""SQS client for the pipeline's job queues."""

import json
import os
from typing import List, Dict, Any

import boto3
from loguru import logger

# SQS caps DelaySeconds and VisibilityTimeout
MAX_DELAY_SECONDS = 900
MAX_VISIBILITY_TIMEOUT = 43200


def get_sqs_client():
    """Get SQS client using environment credentials."""
    return boto3.client(
        "sqs",
        region_name=os.getenv("AWS_REGION", "eu-north-1"),
    )


def send_message(queue_url: str, body: Dict[str, Any], delay_seconds: int = 0) -> str:
    """Send a single message to SQS.

    Returns message ID.
    """
    client = get_sqs_client()
    response = client.send_message(
        QueueUrl=queue_url,
        MessageBody=json.dumps(body),
        DelaySeconds=max(0, min(int(delay_seconds), MAX_DELAY_SECONDS)),
    )
    return response["MessageId"]


def receive_messages(
    queue_url: str,
    max_messages: int = 1,
    wait_time_seconds: int = 20,
    visibility_timeout: int = 900,
) -> List[Dict[str, Any]]:
    """Receive messages from SQS with long polling.

    Returns:
        List of messages with 'body' (parsed JSON), 'receipt_handle',
        'message_id' and 'receive_count' (1 on first delivery).
    """
    client = get_sqs_client()

    response = client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=min(max_messages, 10),
        WaitTimeSeconds=wait_time_seconds,
        VisibilityTimeout=visibility_timeout,
        AttributeNames=["ApproximateReceiveCount"],
    )

    messages = []
    for msg in response.get("Messages", []):
        messages.append({
            "body": json.loads(msg["Body"]),
            "receipt_handle": msg["ReceiptHandle"],
            "message_id": msg["MessageId"],
            "receive_count": int(msg.get("Attributes", {}).get("ApproximateReceiveCount", 1)),
        })

    return messages


def delete_message(queue_url: str, receipt_handle: str) -> None:
    """Delete a message from SQS after successful processing."""
    client = get_sqs_client()
    client.delete_message(
        QueueUrl=queue_url,
        ReceiptHandle=receipt_handle,
    )


def change_visibility(queue_url: str, receipt_handle: str, timeout: int) -> None:
    """Hide a received message for `timeout` seconds (retry backoff)."""
    client = get_sqs_client()
    try:
        client.change_message_visibility(
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=max(0, min(int(timeout), MAX_VISIBILITY_TIMEOUT)),
        )
    except client.exceptions.ReceiptHandleIsInvalid:
        logger.warning("Receipt handle expired before visibility change")


def get_queue_attributes(queue_url: str) -> Dict[str, str]:
    """Get queue attributes like message count."""
    client = get_sqs_client()
    response = client.get_queue_attributes(
        QueueUrl=queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )
    return response.get("Attributes", {})
