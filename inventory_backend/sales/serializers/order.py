# sales/serializers/order.py

from rest_framework import serializers

from sales.models import Order, OrderLine


class OrderLineSerializer(serializers.ModelSerializer):
    product_variant_sku = serializers.CharField(
        source="product_variant.sku",
        read_only=True,
        default=None,
    )

    class Meta:
        model = OrderLine
        fields = [
            "id",
            "product_variant",
            "product_variant_sku",
            "quantity",
            "sale_price",
            "cost_price",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Read-only order representation returned by the fulfillment endpoints.
    """

    lines = OrderLineSerializer(many=True, read_only=True)
    completed_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_no",
            "status",
            "created_at",
            "last_status_changed_at",
            "completed_at",
            "completed_by_id",
            "lines",
        ]
        read_only_fields = fields


class TransitionCheckQuerySerializer(serializers.Serializer):
    current = serializers.CharField(required=True, allow_blank=True)
    next = serializers.CharField(required=True, allow_blank=True)
