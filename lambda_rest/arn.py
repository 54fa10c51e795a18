"""Amazon Resource Name parsing.

.. code-block:: python

    arn = SQSQueueARN.normalize("arn:aws:sqs:us-east-1:123456789012:orders")
    arn.url()   # "https://sqs.us-east-1.amazonaws.com/123456789012/orders"
"""

from typing import Union

from pydantic import BaseModel, ConfigDict, Field

ARN_PREFIX = "arn"


class AmazonResourceName(BaseModel):
    """``arn:partition:service:region:account-id:resource``.

    The resource part keeps any further colons, for example
    ``function:my-function:PROD`` for a Lambda alias.
    """

    model_config = ConfigDict(frozen=True)

    partition: str = Field("aws", description="AWS partition, aws, aws-cn or aws-us-gov")
    service: str = Field(..., description="Service namespace, e.g. sqs")
    region: str = Field("", description="Region, blank for global resources")
    account_id: str = Field("", description="Owning account id")
    resource: str = Field("", description="Resource type and id")

    @classmethod
    def parse(cls, text: str):
        """Parse an ARN string.

        Raises:
            ValueError: If ``text`` is not an ARN.
        """
        parts = str(text).strip().split(":", 5)
        if len(parts) != 6 or parts[0] != ARN_PREFIX or not parts[1] or not parts[2]:
            raise ValueError(f"Invalid ARN: {text!r}")

        _, partition, service, region, account_id, resource = parts
        return cls(
            partition=partition,
            service=service,
            region=region,
            account_id=account_id,
            resource=resource,
        )

    def __str__(self) -> str:
        return ":".join(
            [ARN_PREFIX, self.partition, self.service, self.region, self.account_id, self.resource]
        )


class SQSQueueARN(AmazonResourceName):
    """ARN of an SQS queue."""

    service: str = Field("sqs", description="Service namespace")

    def url(self) -> str:
        """Return the queue URL.

        Raises:
            ValueError: If the ARN is not an SQS ARN or lacks a region or queue name.
        """
        if self.service != "sqs" or not self.region.strip() or not self.resource.strip():
            raise ValueError("Invalid ARN subcomponent")

        return f"https://{self.service}.{self.region.strip()}.amazonaws.com/{self.account_id}/{self.resource.strip()}"

    @classmethod
    def normalize(cls, arn: Union[str, AmazonResourceName]) -> "SQSQueueARN":
        """Return ``arn`` as an :class:`SQSQueueARN`.

        Raises:
            ValueError: If a string ``arn`` cannot be parsed.
        """
        if isinstance(arn, SQSQueueARN):
            return arn
        if isinstance(arn, AmazonResourceName):
            return cls(**arn.model_dump())
        return cls.parse(arn)
