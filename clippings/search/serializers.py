from rest_framework import serializers

from .display import InventoryDisplay, NoResults, PreformattedDisplay, TextDisplay


class SearchQuerySerializer(serializers.Serializer):
    query = serializers.CharField(
        trim_whitespace=True,
        error_messages={
            'required': 'Please enter a search term.',
            'blank': 'Please enter a search term.',
        },
    )


class InventoryLineSerializer(serializers.Serializer):
    item_name = serializers.CharField()
    quantity = serializers.IntegerField()
    unit = serializers.CharField()
    location = serializers.CharField(allow_null=True)
    notes = serializers.CharField(allow_null=True)
    low_stock = serializers.BooleanField()


class NoResultsSerializer(serializers.Serializer):
    kind = serializers.CharField()
    message = serializers.CharField()


class InventoryDisplaySerializer(serializers.Serializer):
    kind = serializers.CharField()
    title = serializers.CharField()
    entries = InventoryLineSerializer(many=True)
    source_label = serializers.CharField()


class PreformattedDisplaySerializer(serializers.Serializer):
    kind = serializers.CharField()
    title = serializers.CharField(allow_null=True)
    text = serializers.CharField()
    source_label = serializers.CharField()


class TextDisplaySerializer(serializers.Serializer):
    kind = serializers.CharField()
    text = serializers.CharField()
    source_label = serializers.CharField()


DISPLAY_SERIALIZERS = {
    NoResults: NoResultsSerializer,
    InventoryDisplay: InventoryDisplaySerializer,
    PreformattedDisplay: PreformattedDisplaySerializer,
    TextDisplay: TextDisplaySerializer,
}


def serialize_display(display):
    """Serialize any display model with the serializer for its variant"""
    serializer_class = DISPLAY_SERIALIZERS[type(display)]
    return serializer_class(display).data
